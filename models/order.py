from enum import Enum
from datetime import datetime

from sqlalchemy import Column, String, Text, DateTime, Date, ForeignKey
from sqlalchemy.sql import func

from models import db, new_id, MONEY


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def values(cls):
        return [s.value for s in cls]


# Forward progression; CANCELLED is a side branch
STATUS_SEQUENCE = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]
CANCELLABLE_FROM = {OrderStatus.PENDING, OrderStatus.CONFIRMED}


class Order(db.Model):
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        db.Index("ix_orders_status", "status"),
    )
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("user_profile.id"), nullable=False)
    status = Column(String(20), nullable=False, default=OrderStatus.CONFIRMED.value)

    # Frozen at checkout, never recomputed
    subtotal = Column(MONEY, nullable=False)
    tax = Column(MONEY, nullable=False)
    shipping = Column(MONEY, nullable=False, default=0)
    total = Column(MONEY, nullable=False)
    shipping_address = Column(db.JSON, nullable=True)
    payment_method = Column(String(50), nullable=True)

    tracking_number = Column(String(100), nullable=True)
    carrier = Column(String(100), nullable=True)
    estimated_delivery = Column(Date, nullable=True)
    shipped_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy=True,
        order_by="OrderItem.position",
    )

    @property
    def short_id(self) -> str:
        return (self.id or "")[:8].upper()

    def to_dict(self, include_items=True):
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status,
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "shipping": float(self.shipping or 0),
            "total": float(self.total),
            "shipping_address": self.shipping_address,
            "payment_method": self.payment_method,
            "tracking_number": self.tracking_number,
            "carrier": self.carrier,
            "estimated_delivery": self.estimated_delivery.isoformat() if self.estimated_delivery else None,
            "shipped_at": self.shipped_at,
            "delivered_at": self.delivered_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if include_items:
            data["items"] = [i.to_dict() for i in self.items]
        return data


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    # Copied from the product at checkout; the product may change or disappear later
    product_id = db.Column(db.String(36), nullable=False, index=True)
    product_name = db.Column(db.String(200), nullable=False)
    product_image = db.Column(db.String(500), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(MONEY, nullable=False)

    @property
    def line_total(self):
        return self.price * self.quantity

    def to_dict(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_image": self.product_image,
            "quantity": self.quantity,
            "price": float(self.price),
            "line_total": float(self.line_total),
        }
