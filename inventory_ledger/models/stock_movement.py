"""
Stock Movement model for inventory tracking and audit

Append-only: a row is written once by the adjustment service and never
updated or deleted (see core.immutability). Corrections are new rows.

- Track change provenance (who, when, why)
- new_stock is stored redundantly so history can be audited without replay
- ledger_key + sequence give a total order per product / variant ledger
"""
import enum
import uuid
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text,
    CheckConstraint, Index, UniqueConstraint
)

from inventory_ledger.core.database import Base


class MovementType(str, enum.Enum):
    MANUAL_ADJUSTMENT = "manual_adjustment"
    SALE = "sale"
    RETURN = "return"
    RESTOCK = "restock"
    CORRECTION = "correction"

    @classmethod
    def values(cls) -> list:
        return [m.value for m in cls]


# Range of the Integer stock columns (signed 32-bit on Postgres)
STOCK_MIN = -(2 ** 31)
STOCK_MAX = 2 ** 31 - 1


def ledger_key_for(product_id: str, variant_id: str = None) -> str:
    """Key of the ledger a movement belongs to."""
    if variant_id:
        return f"{product_id}:{variant_id}"
    return str(product_id)


class StockMovement(Base):
    """Audit trail for inventory stock changes"""
    __tablename__ = "stock_movements"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # What changed
    product_id = Column(
        String(36),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    variant_id = Column(
        String(36),
        ForeignKey("product_variants.id", ondelete="RESTRICT"),
        nullable=True,
        index=True
    )
    ledger_key = Column(String(80), nullable=False)
    sequence = Column(Integer, nullable=False)

    # Movement details
    type = Column(String(30), nullable=False, index=True)
    change_amount = Column(Integer, nullable=False)  # positive for in, negative for out
    previous_stock = Column(Integer, nullable=False)
    new_stock = Column(Integer, nullable=False)

    # Why
    notes = Column(Text, nullable=True)
    reference_id = Column(String(100), nullable=True)  # e.g. POS order number
    idempotency_key = Column(String(255), nullable=True, unique=True)

    # Who (NULL for system-generated movements such as sales)
    creator_id = Column(String(64), nullable=True)

    # When - set by the adjustment service, monotonic per ledger
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    __table_args__ = (
        CheckConstraint("change_amount <> 0", name="chk_movement_nonzero"),
        CheckConstraint("new_stock = previous_stock + change_amount", name="chk_movement_arithmetic"),
        CheckConstraint("sequence >= 1", name="chk_movement_sequence"),
        CheckConstraint(
            "type IN ('manual_adjustment', 'sale', 'return', 'restock', 'correction')",
            name="chk_movement_type"
        ),
        UniqueConstraint("ledger_key", "sequence", name="uq_stock_movements_ledger_sequence"),
        Index("ix_stock_movements_created_desc", created_at.desc(), sequence.desc()),
        Index("ix_stock_movements_product_created", product_id, created_at.desc()),
    )

    def __repr__(self):
        return f"<StockMovement {self.id}: {self.type} {self.change_amount:+d} on {self.ledger_key}>"
