"""
Inventory API Routes

Thin transport over the ledger services: every handler validates input,
calls one service operation and shapes the plain records it returns.
Ledger errors are turned into responses by core.error_handler.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query

from inventory_ledger.api.deps import (
    get_actor_id,
    get_adjustment_service,
    get_query_service,
    get_stock_repository,
)
from inventory_ledger.core.config import settings
from inventory_ledger.schemas import (
    InventoryItemOut,
    InventoryListResponse,
    MovementPageOut,
    ReconciliationOut,
    StockAdjustmentRequest,
    StockAdjustmentResponse,
    StockMovementOut,
    StockSummaryOut,
)
from inventory_ledger.services import (
    AdjustmentService,
    InventoryQueryService,
    StockRepository,
    StockStatus,
    classify,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("", response_model=InventoryListResponse)
async def list_inventory(
    search: Optional[str] = Query(None, max_length=200),
    status: Optional[StockStatus] = None,
    sort: str = Query("stock", pattern="^-?(stock|name|sku)$"),
    include_inactive: bool = False,
    service: InventoryQueryService = Depends(get_query_service),
):
    """Current stock per product with its status badge."""
    items = await service.list_inventory(
        search=search,
        status=status,
        sort=sort,
        include_inactive=include_inactive,
    )
    return {
        "items": [InventoryItemOut.model_validate(i) for i in items],
        "total": len(items),
    }


@router.get("/summary", response_model=StockSummaryOut)
async def get_stock_summary(
    service: InventoryQueryService = Depends(get_query_service),
):
    summary = await service.stock_summary()
    return {
        "in_stock": summary.in_stock,
        "low_stock": summary.low_stock,
        "out_of_stock": summary.out_of_stock,
        "total": summary.total,
    }


@router.post("/adjust", response_model=StockAdjustmentResponse)
async def adjust_stock(
    request: StockAdjustmentRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=255),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: AdjustmentService = Depends(get_adjustment_service),
    repository: StockRepository = Depends(get_stock_repository),
):
    """Adjust stock with audit trail."""
    movement = await service.apply_adjustment(
        request.product_id,
        request.change_amount,
        request.type,
        notes=request.notes,
        actor_id=actor_id,
        variant_id=request.variant_id,
        reference_id=request.reference_id,
        idempotency_key=request.idempotency_key or idempotency_key,
    )

    # Variants share the product threshold
    min_stock_level = await repository.get_min_stock_level(movement.product_id)

    return {
        "status": "adjusted",
        "product_id": movement.product_id,
        "variant_id": movement.variant_id,
        "previous_stock": movement.previous_stock,
        "new_stock": movement.new_stock,
        "stock_status": classify(movement.new_stock, min_stock_level),
        "movement": StockMovementOut.model_validate(movement),
    }


@router.get("/movements", response_model=MovementPageOut)
async def list_movements(
    product_id: Optional[str] = Query(None, max_length=36),
    variant_id: Optional[str] = Query(None, max_length=36),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1, le=settings.MOVEMENTS_MAX_PAGE_SIZE),
    service: InventoryQueryService = Depends(get_query_service),
):
    """Stock movement history, newest first."""
    size = page_size or settings.MOVEMENTS_DEFAULT_PAGE_SIZE
    movements = await service.list_movements(product_id, page=page, page_size=size, variant_id=variant_id)
    total = await service.count_movements(product_id, variant_id)
    return {
        "movements": [StockMovementOut.model_validate(m) for m in movements],
        "page": page,
        "page_size": size,
        "total": total,
    }


@router.get("/{product_id}/reconciliation", response_model=ReconciliationOut)
async def reconcile_product(
    product_id: str,
    variant_id: Optional[str] = Query(None, max_length=36),
    repository: StockRepository = Depends(get_stock_repository),
):
    """Replay the ledger and compare it with the cached stock."""
    report = await repository.reconcile(product_id, variant_id)
    return ReconciliationOut.model_validate(report)

