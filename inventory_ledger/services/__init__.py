from inventory_ledger.core.immutability import register_immutability_listeners
from inventory_ledger.services.stock_status import StockStatus, classify
from inventory_ledger.services.movement_log import MovementLog, MovementRecord
from inventory_ledger.services.stock_repository import ReconciliationReport, StockRepository
from inventory_ledger.services.adjustment_service import AdjustmentService
from inventory_ledger.services.inventory_query import InventoryItem, InventoryQueryService, StockSummary

register_immutability_listeners()

__all__ = [
    "StockStatus",
    "classify",
    "MovementLog",
    "MovementRecord",
    "StockRepository",
    "ReconciliationReport",
    "AdjustmentService",
    "InventoryItem",
    "InventoryQueryService",
    "StockSummary",
]
