"""
API dependencies

Authentication lives in front of this service; the caller's identity arrives
as the X-Actor-Id header and is recorded as the movement's creator.
"""
from functools import lru_cache
from typing import Optional

from fastapi import Header

from inventory_ledger.services import AdjustmentService, InventoryQueryService, StockRepository


@lru_cache
def get_adjustment_service() -> AdjustmentService:
    return AdjustmentService()


@lru_cache
def get_query_service() -> InventoryQueryService:
    return InventoryQueryService()


@lru_cache
def get_stock_repository() -> StockRepository:
    return StockRepository()


async def get_actor_id(
    x_actor_id: Optional[str] = Header(None, max_length=64),
) -> Optional[str]:
    """Operator id forwarded by the gateway, None for system callers"""
    if x_actor_id is None:
        return None
    return x_actor_id.strip() or None
