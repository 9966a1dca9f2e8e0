"""
Inventory Query Service

Read-only views for the inventory screen: current-stock listing with search,
status filter and sort, the dashboard status summary, and movement history.
Plain SELECTs without row locks, so readers never block the adjustment path.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Union

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from inventory_ledger.core.config import Settings, settings as default_settings
from inventory_ledger.core.database import AsyncSessionLocal
from inventory_ledger.core.exceptions import LedgerValidationError
from inventory_ledger.models import Product, ProductVariant
from inventory_ledger.services.movement_log import MovementLog, MovementRecord
from inventory_ledger.services.stock_status import StockStatus, classify, status_clause

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "stock": Product.stock,
    "name": Product.name,
    "sku": Product.sku,
}
DEFAULT_SORT = "stock"


@dataclass(frozen=True)
class InventoryItem:
    id: str
    name: str
    sku: Optional[str]
    stock: int
    min_stock_level: int
    status: StockStatus
    variant_count: int
    is_active: bool


@dataclass(frozen=True)
class StockSummary:
    in_stock: int
    low_stock: int
    out_of_stock: int

    @property
    def total(self) -> int:
        return self.in_stock + self.low_stock + self.out_of_stock


def parse_status_filter(value: Union[StockStatus, str, None]) -> Optional[StockStatus]:
    if value is None or value == "":
        return None
    try:
        return StockStatus(value)
    except ValueError:
        raise LedgerValidationError(
            f"Unknown stock status {value!r}",
            code="INVALID_STATUS_FILTER",
            details={"status": value, "allowed": [s.value for s in StockStatus]},
        )


def parse_sort(value: Optional[str]):
    value = value or DEFAULT_SORT
    descending = value.startswith("-")
    name = value[1:] if descending else value
    column = SORT_FIELDS.get(name)
    if column is None:
        raise LedgerValidationError(
            f"Unknown sort field {value!r}",
            code="INVALID_SORT",
            details={"sort": value, "allowed": sorted(SORT_FIELDS)},
        )
    return column.desc() if descending else column.asc()


class InventoryQueryService:
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        movement_log: Optional[MovementLog] = None,
        config: Optional[Settings] = None,
    ):
        self._session_factory = session_factory or AsyncSessionLocal
        self._config = config or default_settings
        self.movement_log = movement_log or MovementLog(self._session_factory, self._config)

    async def list_inventory(
        self,
        search: Optional[str] = None,
        status: Union[StockStatus, str, None] = None,
        sort: Optional[str] = None,
        include_inactive: bool = False,
    ) -> List[InventoryItem]:
        """
        Current stock per product with its computed status.

        search matches name or SKU, case-insensitive substring. Default order
        is stock ascending so the emptiest shelves come first.
        """
        status_filter = parse_status_filter(status)
        order = parse_sort(sort)

        variant_count = (
            select(func.count(ProductVariant.id))
            .where(ProductVariant.product_id == Product.id)
            .correlate(Product)
            .scalar_subquery()
        )
        stmt = select(Product, variant_count.label("variant_count"))

        if not include_inactive:
            stmt = stmt.where(Product.is_active.is_(True))

        term = (search or "").strip()
        if term:
            stmt = stmt.where(or_(
                Product.name.icontains(term, autoescape=True),
                Product.sku.icontains(term, autoescape=True),
            ))

        if status_filter is not None:
            stmt = stmt.where(status_clause(status_filter, Product.stock, Product.min_stock_level))

        stmt = stmt.order_by(order, Product.id.asc())

        async with self._session_factory() as db:
            rows = (await db.execute(stmt)).all()

        return [
            InventoryItem(
                id=p.id,
                name=p.name,
                sku=p.sku,
                stock=p.stock,
                min_stock_level=p.min_stock_level,
                status=classify(p.stock, p.min_stock_level),
                variant_count=count or 0,
                is_active=p.is_active,
            )
            for p, count in rows
        ]

    async def stock_summary(self) -> StockSummary:
        """Active product counts per status tag."""
        def bucket(status: StockStatus):
            return func.coalesce(
                func.sum(case((status_clause(status, Product.stock, Product.min_stock_level), 1), else_=0)),
                0,
            )

        stmt = select(
            bucket(StockStatus.IN_STOCK),
            bucket(StockStatus.LOW_STOCK),
            bucket(StockStatus.OUT_OF_STOCK),
        ).where(Product.is_active.is_(True))

        async with self._session_factory() as db:
            in_stock, low_stock, out_of_stock = (await db.execute(stmt)).one()

        return StockSummary(
            in_stock=int(in_stock),
            low_stock=int(low_stock),
            out_of_stock=int(out_of_stock),
        )

    async def list_movements(
        self,
        product_id: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None,
        variant_id: Optional[str] = None,
    ) -> List[MovementRecord]:
        """Movement history newest first; the global feed when product_id is omitted."""
        if product_id is None:
            if variant_id is not None:
                raise LedgerValidationError(
                    "variant_id requires product_id",
                    code="VARIANT_WITHOUT_PRODUCT",
                    details={"variant_id": variant_id},
                )
            return await self.movement_log.list_all(page, page_size)
        return await self.movement_log.list_by_product(product_id, page, page_size, variant_id=variant_id)

    async def count_movements(self, product_id: Optional[str] = None, variant_id: Optional[str] = None) -> int:
        return await self.movement_log.count(product_id, variant_id)
