from inventory_ledger.schemas.inventory import (
    StockAdjustmentRequest,
    StockAdjustmentResponse,
    StockMovementOut,
    InventoryItemOut,
    InventoryListResponse,
    StockSummaryOut,
    MovementPageOut,
    ReconciliationOut,
)
