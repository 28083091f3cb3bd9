"""
SQLAlchemy Database Models

Three collections:
- identities: registered accounts (customers and the flat admin pool)
- orders: the order ledger, each row carrying its own purchaser snapshot
- food_items: the catalog
"""

import enum
import uuid

from sqlalchemy import Column, Integer, String, Float, DateTime, Text, Enum, Boolean, JSON

from food_ordering.database import Base, utcnow


class OrderStatus(str, enum.Enum):
    """Order status workflow: Pending, then Delivered or Rejected."""
    PENDING = "Pending"
    DELIVERED = "Delivered"
    REJECTED = "Rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING


class Identity(Base):
    """
    Registered account.

    Either ``mobile`` or ``email`` (or both) identifies the account at sign-in.
    Both columns are unique so concurrent sign-ups with the same identifier
    cannot both commit.
    """
    __tablename__ = "identities"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    name = Column(String(100), nullable=False)
    mobile = Column(String(20), nullable=True, unique=True, index=True)
    email = Column(String(255), nullable=True, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    profile_image = Column(String(500), nullable=True)

    is_admin = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Identity #{self.id} - {self.name} - {self.email or self.mobile}>"


class Order(Base):
    """
    Order ledger entry.

    The purchaser fields are a copy taken when the order was placed, not a
    reference to an Identity, so the order outlives any change to the account.
    """
    __tablename__ = "orders"

    # Primary Key (also the insertion sequence used to break timestamp ties)
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # =========================================================================
    # PURCHASER SNAPSHOT
    # =========================================================================
    purchaser_name = Column(String(100), nullable=False)
    purchaser_email = Column(String(255), nullable=False, index=True)

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    lines = Column(JSON, nullable=False)  # [{"food_name", "food_price", "quantity"}]
    total_amount = Column(Float, nullable=False)
    payment_method = Column(String(50), nullable=True)

    # =========================================================================
    # ORDER STATUS
    # =========================================================================
    status = Column(
        Enum(OrderStatus, values_callable=lambda e: [s.value for s in e]),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Order #{self.id} - {self.purchaser_email} - {self.status.value}>"


class FoodItem(Base):
    """Catalog entry."""
    __tablename__ = "food_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    image = Column(String(500), nullable=False)
    price = Column(Float, nullable=False)
    description = Column(Text, nullable=False)
    type = Column(String(50), nullable=False)

    def __repr__(self):
        return f"<FoodItem {self.id} - {self.name}>"
