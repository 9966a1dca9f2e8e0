"""
Inventory schemas
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, StrictInt

from inventory_ledger.models.stock_movement import MovementType
from inventory_ledger.services.stock_status import StockStatus


class StockAdjustmentRequest(BaseModel):
    product_id: str = Field(..., min_length=1, max_length=36)
    variant_id: Optional[str] = Field(None, max_length=36)
    change_amount: StrictInt  # positive for increase, negative for decrease
    type: MovementType = MovementType.MANUAL_ADJUSTMENT
    notes: Optional[str] = Field(None, max_length=2000)
    reference_id: Optional[str] = Field(None, max_length=100)
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=255)


class StockMovementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    product_id: str
    variant_id: Optional[str] = None
    change_amount: int
    previous_stock: int
    new_stock: int
    type: MovementType
    notes: Optional[str] = None
    reference_id: Optional[str] = None
    creator_id: Optional[str] = None
    idempotency_key: Optional[str] = None
    sequence: int
    created_at: datetime
    product_name: Optional[str] = None
    variant_name: Optional[str] = None


class StockAdjustmentResponse(BaseModel):
    status: str = "adjusted"
    product_id: str
    variant_id: Optional[str] = None
    previous_stock: int
    new_stock: int
    stock_status: StockStatus
    movement: StockMovementOut


class InventoryItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    sku: Optional[str] = None
    stock: int
    min_stock_level: int
    status: StockStatus
    variant_count: int = 0
    is_active: bool = True


class InventoryListResponse(BaseModel):
    items: List[InventoryItemOut]
    total: int


class StockSummaryOut(BaseModel):
    in_stock: int
    low_stock: int
    out_of_stock: int
    total: int


class MovementPageOut(BaseModel):
    movements: List[StockMovementOut]
    page: int
    page_size: int
    total: int


class ReconciliationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    variant_id: Optional[str] = None
    cached_stock: int
    ledger_stock: int
    drift: int
    movement_count: int
    chain_breaks: List[str] = []
    ordering_violations: List[str] = []
    is_consistent: bool
