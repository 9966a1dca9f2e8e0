"""
Product model (stock-relevant projection)

The catalog owns every other product field; this service only needs what the
ledger and the inventory screen read. `stock` is a cached projection of the
product's movement history and is written only by the adjustment service.

`version` is the optimistic concurrency column: every stock write bumps it and
a write against a stale version fails the flush.
"""
import uuid
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey,
    CheckConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from inventory_ledger.core.config import settings
from inventory_ledger.core.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_new_id)
    sku = Column(String(100), unique=True, index=True, nullable=True)
    name = Column(String(255), nullable=False, index=True)

    # Inventory
    stock = Column(Integer, nullable=False, default=0)
    min_stock_level = Column(Integer, nullable=False, default=lambda: settings.DEFAULT_MIN_STOCK_LEVEL)
    is_active = Column(Boolean, nullable=False, default=True)

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    variants = relationship("ProductVariant", back_populates="product", lazy="raise")

    __table_args__ = (
        CheckConstraint("min_stock_level >= 0", name="chk_products_min_stock_level"),
        Index("ix_products_stock", "stock"),
    )

    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

    def __repr__(self):
        return f"<Product {self.id}: {self.name} stock={self.stock}>"


class ProductVariant(Base):
    """Sub-variant with its own stock counter (size, colour, ...)."""
    __tablename__ = "product_variants"

    id = Column(String(36), primary_key=True, default=_new_id)
    product_id = Column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name = Column(String(255), nullable=False)
    sku = Column(String(100), unique=True, nullable=True)

    stock = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    product = relationship("Product", back_populates="variants", lazy="raise")

    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

    def __repr__(self):
        return f"<ProductVariant {self.id}: {self.name} of {self.product_id} stock={self.stock}>"
