from inventory_ledger.models.product import Product, ProductVariant
from inventory_ledger.models.stock_movement import (
    STOCK_MAX,
    STOCK_MIN,
    MovementType,
    StockMovement,
    ledger_key_for,
)

__all__ = [
    "Product",
    "ProductVariant",
    "MovementType",
    "StockMovement",
    "ledger_key_for",
    "STOCK_MIN",
    "STOCK_MAX",
]
