"""
Tests for the append-only movement log.
"""
import pytest
from sqlalchemy import select

from inventory_ledger.core.exceptions import ImmutableMovementError, InvalidPage
from inventory_ledger.models import MovementType, StockMovement


async def seed_history(ledger, product_id, deltas):
    movements = []
    for delta in deltas:
        movements.append(
            await ledger.adjustments.apply_adjustment(product_id, delta, MovementType.MANUAL_ADJUSTMENT)
        )
        ledger.clock.advance(seconds=1)
    return movements


class TestListing:
    @pytest.mark.asyncio
    async def test_list_by_product_newest_first(self, ledger):
        p = await ledger.add_product()
        movements = await seed_history(ledger, p, [5, 2, -1])

        listed = await ledger.movement_log.list_by_product(p)

        assert [m.id for m in listed] == [m.id for m in reversed(movements)]

    @pytest.mark.asyncio
    async def test_list_by_product_excludes_other_products(self, ledger):
        p = await ledger.add_product()
        q = await ledger.add_product()
        await seed_history(ledger, p, [1])
        await seed_history(ledger, q, [2, 3])

        listed = await ledger.movement_log.list_by_product(p)

        assert len(listed) == 1
        assert listed[0].product_id == p

    @pytest.mark.asyncio
    async def test_list_all_interleaves_products(self, ledger):
        p = await ledger.add_product()
        q = await ledger.add_product()
        first = await seed_history(ledger, p, [1])
        second = await seed_history(ledger, q, [2])
        third = await seed_history(ledger, p, [3])

        listed = await ledger.movement_log.list_all()

        assert [m.id for m in listed] == [third[0].id, second[0].id, first[0].id]

    @pytest.mark.asyncio
    async def test_pagination(self, ledger):
        p = await ledger.add_product()
        movements = await seed_history(ledger, p, [1, 1, 1, 1, 1])
        newest_first = [m.id for m in reversed(movements)]

        page1 = await ledger.movement_log.list_by_product(p, page=1, page_size=2)
        page2 = await ledger.movement_log.list_by_product(p, page=2, page_size=2)
        page3 = await ledger.movement_log.list_by_product(p, page=3, page_size=2)
        page4 = await ledger.movement_log.list_by_product(p, page=4, page_size=2)

        assert [m.id for m in page1 + page2 + page3] == newest_first
        assert page4 == []

    @pytest.mark.asyncio
    async def test_variant_scope(self, ledger):
        p = await ledger.add_product()
        v = await ledger.add_variant(p)
        await ledger.adjustments.apply_adjustment(p, 1, MovementType.RESTOCK)
        on_variant = await ledger.adjustments.apply_adjustment(p, 2, MovementType.RESTOCK, variant_id=v)

        everything = await ledger.movement_log.list_by_product(p)
        variant_only = await ledger.movement_log.list_by_product(p, variant_id=v)

        assert len(everything) == 2
        assert [m.id for m in variant_only] == [on_variant.id]

    @pytest.mark.asyncio
    async def test_listings_carry_names(self, ledger):
        p = await ledger.add_product(name="Spider-Man #1", sku="SM-1")
        v = await ledger.add_variant(p, name="CGC 9.8")
        await ledger.adjustments.apply_adjustment(p, 1, MovementType.RESTOCK)
        ledger.clock.advance(seconds=1)
        await ledger.adjustments.apply_adjustment(p, 2, MovementType.RESTOCK, variant_id=v)

        by_product = await ledger.movement_log.list_by_product(p)
        feed = await ledger.movement_log.list_all()

        for listed in (by_product, feed):
            assert [(m.product_name, m.variant_name) for m in listed] == [
                ("Spider-Man #1", "CGC 9.8"),
                ("Spider-Man #1", None),
            ]

    @pytest.mark.asyncio
    async def test_write_path_record_has_no_names(self, ledger):
        p = await ledger.add_product(name="Spider-Man #1")
        recorded = await ledger.adjustments.apply_adjustment(p, 1, MovementType.RESTOCK)
        assert recorded.product_name is None
        assert recorded.variant_name is None

    @pytest.mark.asyncio
    async def test_count(self, ledger):
        p = await ledger.add_product()
        q = await ledger.add_product()
        await seed_history(ledger, p, [1, 2])
        await seed_history(ledger, q, [3])

        assert await ledger.movement_log.count() == 3
        assert await ledger.movement_log.count(p) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page,page_size", [(0, 10), (1, 0), (1, 201), (-1, 10)])
    async def test_invalid_page(self, ledger, page, page_size):
        with pytest.raises(InvalidPage):
            await ledger.movement_log.list_all(page=page, page_size=page_size)

    @pytest.mark.asyncio
    async def test_default_page_size(self, ledger, settings_factory):
        from inventory_ledger.services import MovementLog

        log = MovementLog(ledger.session_factory, settings_factory(MOVEMENTS_DEFAULT_PAGE_SIZE=2))
        p = await ledger.add_product()
        await seed_history(ledger, p, [1, 1, 1])

        assert len(await log.list_by_product(p)) == 2


class TestImmutability:
    """Recorded movements cannot be changed through the ORM."""

    @pytest.mark.asyncio
    async def test_update_refused(self, ledger):
        p = await ledger.add_product()
        recorded = await ledger.adjustments.apply_adjustment(p, 4, MovementType.RESTOCK)

        async with ledger.session_factory() as db:
            movement = await db.get(StockMovement, recorded.id)
            movement.notes = "rewritten"
            with pytest.raises(ImmutableMovementError) as exc_info:
                await db.commit()
            assert exc_info.value.details["operation"] == "update"

        async with ledger.session_factory() as db:
            stored = await db.get(StockMovement, recorded.id)
            assert stored.notes is None

    @pytest.mark.asyncio
    async def test_delete_refused(self, ledger):
        p = await ledger.add_product()
        recorded = await ledger.adjustments.apply_adjustment(p, 4, MovementType.RESTOCK)

        async with ledger.session_factory() as db:
            movement = await db.get(StockMovement, recorded.id)
            await db.delete(movement)
            with pytest.raises(ImmutableMovementError) as exc_info:
                await db.commit()
            assert exc_info.value.details["operation"] == "delete"

        async with ledger.session_factory() as db:
            rows = (await db.execute(select(StockMovement.id))).scalars().all()
            assert rows == [recorded.id]

    @pytest.mark.asyncio
    async def test_correction_is_a_new_movement(self, ledger):
        p = await ledger.add_product()
        original = await ledger.adjustments.apply_adjustment(p, 10, MovementType.RESTOCK)
        correction = await ledger.adjustments.apply_adjustment(
            p, -2, MovementType.CORRECTION, notes="recount found 8"
        )

        history = await ledger.movement_log.list_by_product(p)
        assert {m.id for m in history} == {original.id, correction.id}
        assert history[-1].change_amount == 10
