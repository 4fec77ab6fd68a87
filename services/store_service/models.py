"""Database models for Store Service."""
from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from shared.database import Base


class SaleStatus(str, Enum):
    """Sale status."""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Product(Base):
    """Catalog product. Stock lives on its flavors unless it has none."""

    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)
    puffs = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    image = Column(Text, nullable=True)
    sabores = Column(JSON, nullable=False, default=list)  # legacy flavor names
    description = Column(Text, nullable=True)
    popular = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)
    show_on_homepage = Column(Boolean, nullable=False, default=True)

    # Legacy product-level counters, used only when the product has no flavors
    inventory = Column(Integer, nullable=False, default=0)
    reserved_inventory = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=10)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    flavors = relationship(
        "Flavor",
        back_populates="product",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("inventory >= 0", name="product_inventory_non_negative"),
        CheckConstraint(
            "reserved_inventory >= 0", name="product_reserved_inventory_non_negative"
        ),
        CheckConstraint("price > 0", name="product_price_positive"),
        Index("ix_products_name", "name"),
    )


class Flavor(Base):
    """Inventory-tracked flavor variant of a product."""

    __tablename__ = "product_flavors"

    id = Column(Uuid, primary_key=True, default=uuid4)
    product_id = Column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    inventory = Column(Integer, nullable=False, default=0)
    reserved_inventory = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=5)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    product = relationship("Product", back_populates="flavors")

    __table_args__ = (
        UniqueConstraint("product_id", "name", name="uq_product_flavor_name"),
        CheckConstraint("inventory >= 0", name="flavor_inventory_non_negative"),
        CheckConstraint(
            "reserved_inventory >= 0", name="flavor_reserved_inventory_non_negative"
        ),
        CheckConstraint(
            "reserved_inventory <= inventory", name="flavor_reserved_within_inventory"
        ),
    )


class Sale(Base):
    """Aggregate record of one order; line items are not stored."""

    __tablename__ = "sales"

    id = Column(Uuid, primary_key=True, default=uuid4)
    affiliate_id = Column(Uuid, nullable=True, index=True)
    product_id = Column(Uuid, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(5, 2), nullable=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    status = Column(String(20), default=SaleStatus.PENDING.value, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="sale_quantity_positive"),
        Index("ix_sales_status_created", "status", "created_at"),
    )
