"""
Tests for the reconciliation CLI.
"""
import pytest

from inventory_ledger.models import MovementType
from inventory_ledger.scripts import reconcile


class TestParser:
    def test_requires_a_target(self):
        with pytest.raises(SystemExit):
            reconcile.build_parser().parse_args([])

    def test_all_and_product_are_exclusive(self):
        with pytest.raises(SystemExit):
            reconcile.build_parser().parse_args(["--all", "--product-id", "p1"])

    def test_variant_requires_product(self):
        with pytest.raises(SystemExit):
            reconcile.main(["--all", "--variant-id", "v1"])


class TestRun:
    @pytest.mark.asyncio
    async def test_single_product(self, ledger):
        p = await ledger.add_product(stock=0)
        await ledger.adjustments.apply_adjustment(p, 3, MovementType.RESTOCK)
        args = reconcile.build_parser().parse_args(["--product-id", p])

        reports = await reconcile.run(args, repository=ledger.repository)

        assert len(reports) == 1
        assert reports[0].is_consistent
        assert reconcile.format_report(reports[0]).startswith(f"[OK] {p}")

    @pytest.mark.asyncio
    async def test_all_reports_drift(self, ledger):
        await ledger.add_product(stock=0)
        drifted = await ledger.add_product(stock=7)
        args = reconcile.build_parser().parse_args(["--all"])

        reports = await reconcile.run(args, repository=ledger.repository)

        lines = [reconcile.format_report(r) for r in reports]
        assert f"[DRIFT] {drifted} cached=7 ledger=0 movements=0" in lines
