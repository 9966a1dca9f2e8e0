"""
Movement Log

Append-only store of stock movements. `record` is called only by the
adjustment service inside its transaction; everything else is read-only.
There is no update or delete.

Listings are newest first: created_at, then per-ledger sequence, then id.
Listed records carry the product and variant names so a history row reads on
its own; records from the write path leave them empty.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inventory_ledger.core.clock import as_utc
from inventory_ledger.core.config import Settings, settings as default_settings
from inventory_ledger.core.database import AsyncSessionLocal
from inventory_ledger.core.exceptions import InvalidPage
from inventory_ledger.models.product import Product, ProductVariant
from inventory_ledger.models.stock_movement import MovementType, StockMovement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MovementRecord:
    """Plain, transport-agnostic view of a stock movement."""
    id: str
    product_id: str
    variant_id: Optional[str]
    change_amount: int
    previous_stock: int
    new_stock: int
    type: MovementType
    notes: Optional[str]
    reference_id: Optional[str]
    creator_id: Optional[str]
    idempotency_key: Optional[str]
    sequence: int
    created_at: datetime
    product_name: Optional[str] = None
    variant_name: Optional[str] = None

    @classmethod
    def from_model(
        cls,
        m: StockMovement,
        product_name: Optional[str] = None,
        variant_name: Optional[str] = None,
    ) -> "MovementRecord":
        return cls(
            id=m.id,
            product_id=m.product_id,
            variant_id=m.variant_id,
            change_amount=m.change_amount,
            previous_stock=m.previous_stock,
            new_stock=m.new_stock,
            type=MovementType(m.type),
            notes=m.notes,
            reference_id=m.reference_id,
            creator_id=m.creator_id,
            idempotency_key=m.idempotency_key,
            sequence=m.sequence,
            created_at=as_utc(m.created_at),
            product_name=product_name,
            variant_name=variant_name,
        )


_NEWEST_FIRST = (
    StockMovement.created_at.desc(),
    StockMovement.sequence.desc(),
    StockMovement.id.desc(),
)


def _named_movements():
    return (
        select(StockMovement, Product.name, ProductVariant.name)
        .outerjoin(Product, Product.id == StockMovement.product_id)
        .outerjoin(ProductVariant, ProductVariant.id == StockMovement.variant_id)
    )


def _named_records(rows) -> List[MovementRecord]:
    return [
        MovementRecord.from_model(m, product_name=product_name, variant_name=variant_name)
        for m, product_name, variant_name in rows
    ]


class MovementLog:
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        config: Optional[Settings] = None,
    ):
        self._session_factory = session_factory or AsyncSessionLocal
        self._config = config or default_settings

    # ----- write path (adjustment service only) -----

    async def record(self, db: AsyncSession, movement: StockMovement) -> MovementRecord:
        """Append a movement within the caller's transaction."""
        db.add(movement)
        await db.flush()
        logger.debug(f"Recorded {movement!r} (seq {movement.sequence})")
        return MovementRecord.from_model(movement)

    async def last_for_ledger(self, db: AsyncSession, ledger_key: str) -> Optional[StockMovement]:
        result = await db.execute(
            select(StockMovement)
            .where(StockMovement.ledger_key == ledger_key)
            .order_by(StockMovement.sequence.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_by_idempotency_key(self, db: AsyncSession, idempotency_key: str) -> Optional[StockMovement]:
        result = await db.execute(
            select(StockMovement).where(StockMovement.idempotency_key == idempotency_key)
        )
        return result.scalar_one_or_none()

    async def ledger(self, db: AsyncSession, ledger_key: str) -> List[StockMovement]:
        """Every movement of one ledger, oldest first (replay order)."""
        result = await db.execute(
            select(StockMovement)
            .where(StockMovement.ledger_key == ledger_key)
            .order_by(StockMovement.created_at.asc(), StockMovement.sequence.asc())
        )
        return list(result.scalars().all())

    # ----- read path -----

    def _resolve_page(self, page: int, page_size: Optional[int]) -> tuple:
        if page_size is None:
            page_size = self._config.MOVEMENTS_DEFAULT_PAGE_SIZE
        max_size = self._config.MOVEMENTS_MAX_PAGE_SIZE
        if page < 1 or page_size < 1 or page_size > max_size:
            raise InvalidPage(page, page_size, max_size)
        return page_size, (page - 1) * page_size

    async def list_by_product(
        self,
        product_id: str,
        page: int = 1,
        page_size: Optional[int] = None,
        variant_id: Optional[str] = None,
    ) -> List[MovementRecord]:
        """A product's movements (all of its ledgers unless variant_id is set), newest first."""
        limit, offset = self._resolve_page(page, page_size)
        stmt = _named_movements().where(StockMovement.product_id == product_id)
        if variant_id is not None:
            stmt = stmt.where(StockMovement.variant_id == variant_id)
        stmt = stmt.order_by(*_NEWEST_FIRST).limit(limit).offset(offset)

        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return _named_records(result.all())

    async def list_all(self, page: int = 1, page_size: Optional[int] = None) -> List[MovementRecord]:
        """Global feed across all products, newest first."""
        limit, offset = self._resolve_page(page, page_size)
        async with self._session_factory() as db:
            result = await db.execute(
                _named_movements().order_by(*_NEWEST_FIRST).limit(limit).offset(offset)
            )
            return _named_records(result.all())

    async def count(self, product_id: Optional[str] = None, variant_id: Optional[str] = None) -> int:
        stmt = select(func.count(StockMovement.id))
        if product_id is not None:
            stmt = stmt.where(StockMovement.product_id == product_id)
        if variant_id is not None:
            stmt = stmt.where(StockMovement.variant_id == variant_id)
        async with self._session_factory() as db:
            return (await db.execute(stmt)).scalar_one()
