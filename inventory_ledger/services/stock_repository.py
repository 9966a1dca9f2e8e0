"""
Stock Repository

Current stock per ledger (product, or product variant) is a cached projection
of the movement log. Only the adjustment service writes it, always in the
same transaction that appends the movement.

reconcile() replays a ledger from zero and compares the result with the cached
value. Any difference is a bug or an out-of-band write, never an expected
state, so drift is logged at ERROR.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inventory_ledger.core.audit_log import ACTION_STOCK_RECONCILE, log_stock_action
from inventory_ledger.core.clock import as_utc
from inventory_ledger.core.database import AsyncSessionLocal
from inventory_ledger.core.exceptions import ProductNotFound, VariantNotFound
from inventory_ledger.models import Product, ProductVariant, ledger_key_for
from inventory_ledger.services.movement_log import MovementLog

logger = logging.getLogger(__name__)

StockHolder = Union[Product, ProductVariant]


@dataclass(frozen=True)
class ReconciliationReport:
    product_id: str
    variant_id: Optional[str]
    cached_stock: int
    ledger_stock: int
    movement_count: int
    chain_breaks: List[str] = field(default_factory=list)
    ordering_violations: List[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return (
            self.cached_stock == self.ledger_stock
            and not self.chain_breaks
            and not self.ordering_violations
        )

    @property
    def drift(self) -> int:
        return self.cached_stock - self.ledger_stock


class StockRepository:
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        movement_log: Optional[MovementLog] = None,
    ):
        self._session_factory = session_factory or AsyncSessionLocal
        self._movement_log = movement_log or MovementLog(self._session_factory)

    async def _load(
        self,
        db: AsyncSession,
        product_id: str,
        variant_id: Optional[str],
        for_update: bool,
    ) -> Tuple[Product, Optional[ProductVariant]]:
        stmt = select(Product).where(Product.id == product_id)
        if for_update and variant_id is None:
            stmt = stmt.with_for_update()  # Pessimistic lock
        product = (await db.execute(stmt)).scalar_one_or_none()
        if product is None:
            raise ProductNotFound(product_id)

        variant = None
        if variant_id is not None:
            vstmt = select(ProductVariant).where(
                ProductVariant.id == variant_id,
                ProductVariant.product_id == product_id,
            )
            if for_update:
                vstmt = vstmt.with_for_update()
            variant = (await db.execute(vstmt)).scalar_one_or_none()
            if variant is None:
                raise VariantNotFound(product_id, variant_id)
        return product, variant

    async def get_stock(self, product_id: str, variant_id: Optional[str] = None) -> int:
        async with self._session_factory() as db:
            product, variant = await self._load(db, product_id, variant_id, for_update=False)
            return (variant or product).stock

    async def get_min_stock_level(self, product_id: str) -> int:
        async with self._session_factory() as db:
            product, _ = await self._load(db, product_id, None, for_update=False)
            return product.min_stock_level

    async def lock_for_update(
        self,
        db: AsyncSession,
        product_id: str,
        variant_id: Optional[str] = None,
    ) -> Tuple[Product, Optional[ProductVariant]]:
        """Row-lock the ledger's stock holder inside the caller's transaction."""
        return await self._load(db, product_id, variant_id, for_update=True)

    async def set_stock(self, db: AsyncSession, holder: StockHolder, value: int) -> None:
        """
        Write the cached stock. The version column turns a concurrent write
        from another process into StaleDataError at flush.
        """
        holder.stock = value
        await db.flush()

    # ----- reconciliation -----

    async def reconcile(self, product_id: str, variant_id: Optional[str] = None) -> ReconciliationReport:
        async with self._session_factory() as db:
            product, variant = await self._load(db, product_id, variant_id, for_update=False)
            cached = (variant or product).stock
            movements = await self._movement_log.ledger(db, ledger_key_for(product_id, variant_id))

        running = 0
        chain_breaks = []
        ordering_violations = []
        previous = None
        for m in movements:
            if m.previous_stock != running or running + m.change_amount != m.new_stock:
                chain_breaks.append(m.id)
            running += m.change_amount
            if previous is not None and (
                as_utc(m.created_at) < as_utc(previous.created_at)
                or m.sequence <= previous.sequence
            ):
                ordering_violations.append(m.id)
            previous = m

        report = ReconciliationReport(
            product_id=product_id,
            variant_id=variant_id,
            cached_stock=cached,
            ledger_stock=running,
            movement_count=len(movements),
            chain_breaks=chain_breaks,
            ordering_violations=ordering_violations,
        )
        if not report.is_consistent:
            logger.error(
                f"Stock ledger drift for {ledger_key_for(product_id, variant_id)}: "
                f"cached={cached} ledger={running} "
                f"chain_breaks={len(chain_breaks)} ordering_violations={len(ordering_violations)}"
            )
        log_stock_action(
            ACTION_STOCK_RECONCILE,
            None,
            product_id,
            variant_id=variant_id,
            details={
                "cached_stock": cached,
                "ledger_stock": running,
                "movement_count": len(movements),
            },
            success=report.is_consistent,
        )
        return report

    async def reconcile_all(self) -> List[ReconciliationReport]:
        """Reconcile every product ledger and every variant ledger."""
        async with self._session_factory() as db:
            product_ids = list((await db.execute(select(Product.id).order_by(Product.id))).scalars().all())
            variant_rows = (
                await db.execute(
                    select(ProductVariant.product_id, ProductVariant.id)
                    .order_by(ProductVariant.product_id, ProductVariant.id)
                )
            ).all()

        reports = []
        for product_id in product_ids:
            reports.append(await self.reconcile(product_id))
        for product_id, variant_id in variant_rows:
            reports.append(await self.reconcile(product_id, variant_id))

        drifted = sum(1 for r in reports if not r.is_consistent)
        logger.info(f"Reconciled {len(reports)} ledgers, {drifted} inconsistent")
        return reports
