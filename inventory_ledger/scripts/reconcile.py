#!/usr/bin/env python3
"""
Stock ledger reconciliation

Replays movement history and compares it with the cached stock counts.
Exits non-zero when any ledger has drifted.

Usage:
    python -m inventory_ledger.scripts.reconcile --all
    python -m inventory_ledger.scripts.reconcile --product-id <id> [--variant-id <id>]
"""
import argparse
import asyncio
import logging
import sys
from typing import List

from inventory_ledger.core.config import settings
from inventory_ledger.services import ReconciliationReport, StockRepository

logger = logging.getLogger(__name__)


def format_report(report: ReconciliationReport) -> str:
    target = report.product_id
    if report.variant_id:
        target = f"{report.product_id}:{report.variant_id}"
    state = "OK" if report.is_consistent else "DRIFT"
    line = (
        f"[{state}] {target} cached={report.cached_stock} ledger={report.ledger_stock} "
        f"movements={report.movement_count}"
    )
    if report.chain_breaks:
        line += f" chain_breaks={','.join(report.chain_breaks)}"
    if report.ordering_violations:
        line += f" ordering_violations={','.join(report.ordering_violations)}"
    return line


async def run(args, repository: StockRepository = None) -> List[ReconciliationReport]:
    repository = repository or StockRepository()
    if args.all:
        return await repository.reconcile_all()
    return [await repository.reconcile(args.product_id, args.variant_id)]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Reconcile cached stock against the movement ledger")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--all", action="store_true", help="Check every product and variant ledger")
    target.add_argument("--product-id", help="Product to check")
    parser.add_argument("--variant-id", help="Variant ledger of --product-id")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.variant_id and not args.product_id:
        parser.error("--variant-id requires --product-id")

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    reports = asyncio.run(run(args))
    for report in reports:
        print(format_report(report))

    drifted = [r for r in reports if not r.is_consistent]
    if drifted:
        print(f"\n{len(drifted)} of {len(reports)} ledger(s) inconsistent")
        return 1
    print(f"\nAll {len(reports)} ledger(s) consistent")
    return 0


if __name__ == "__main__":
    sys.exit(main())
