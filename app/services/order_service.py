import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List

from sqlalchemy import update

from models import db
from models.order import Order, OrderItem, OrderStatus, STATUS_SEQUENCE, CANCELLABLE_FROM
from models.product import Product
from app.errors import NotFoundError, ValidationError
from app.metrics import ORDERS_CREATED, ORDER_STATUS_CHANGES

logger = logging.getLogger(__name__)


class _Unset:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "UNSET"


UNSET: Any = _Unset()


@dataclass
class OrderUpdate:
    """Partial order edit. UNSET leaves a field alone; None clears a tracking field."""

    status: Any = UNSET
    tracking_number: Any = UNSET
    carrier: Any = UNSET
    estimated_delivery: Any = UNSET

    @classmethod
    def from_request(cls, req) -> "OrderUpdate":
        fields = {}
        for name in ("status", "tracking_number", "carrier", "estimated_delivery"):
            if name in req.model_fields_set:
                fields[name] = getattr(req, name)
        return cls(**fields)

    def is_empty(self) -> bool:
        return all(v is UNSET for v in (self.status, self.tracking_number, self.carrier, self.estimated_delivery))


def can_transition(current: str, new: str) -> bool:
    """Forward-only rule: no going back, cancel only before processing, nothing after cancel."""
    if current == new:
        return True
    current_s, new_s = OrderStatus(current), OrderStatus(new)
    if current_s == OrderStatus.CANCELLED:
        return False
    if new_s == OrderStatus.CANCELLED:
        return current_s in CANCELLABLE_FROM
    return STATUS_SEQUENCE.index(new_s) > STATUS_SEQUENCE.index(current_s)


def create_order(user_id: str, cart, shipping_address, payment) -> Order:
    """Freeze a cart into an order with its item rows and stock decrements.

    Does not commit. Run it inside ``transactional()`` so the header, the item
    rows and the stock changes land together or not at all.
    """
    if cart is None or not cart.items:
        raise ValidationError("Cart is empty")

    address = shipping_address.model_dump() if hasattr(shipping_address, "model_dump") else dict(shipping_address or {})
    payment_method = payment.describe() if hasattr(payment, "describe") else payment

    order = Order(
        user_id=user_id,
        status=OrderStatus.CONFIRMED.value,
        subtotal=cart.subtotal,
        tax=cart.tax,
        shipping=cart.shipping,
        total=cart.total,
        shipping_address=address,
        payment_method=payment_method,
    )
    for position, line in enumerate(cart.items):
        order.items.append(
            OrderItem(
                position=position,
                product_id=line.product.id,
                product_name=line.product.name,
                product_image=line.product.image,
                quantity=line.quantity,
                price=line.product.price,
            )
        )
        _reserve_stock(line.product.id, line.product.name, line.quantity)

    db.session.add(order)
    db.session.flush()
    ORDERS_CREATED.inc()
    logger.info("Order %s created with %d items", order.short_id, len(order.items))
    return order


def _reserve_stock(product_id, product_name, quantity):
    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
    )
    if result.rowcount:
        return
    # Deleted products were snapshotted into the cart and still sell at that price
    if db.session.get(Product, product_id) is not None:
        raise ValidationError(f"Not enough stock for {product_name}")


def get_order(order_id) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


def get_order_for_user(order_id, user_id) -> Order:
    order = db.session.get(Order, order_id)
    if order is None or order.user_id != user_id:
        raise NotFoundError("Order not found")
    return order


def list_orders_for_user(user_id) -> List[Order]:
    return db.session.execute(
        db.select(Order).where(Order.user_id == user_id).order_by(Order.created_at.desc(), Order.id)
    ).scalars().all()


def list_all_orders(status=None) -> List[Order]:
    query = db.select(Order)
    if status:
        query = query.where(Order.status == status)
    return db.session.execute(query.order_by(Order.created_at.desc(), Order.id)).scalars().all()


def update_order(order_id, changes: OrderUpdate, forward_only: bool = False) -> Order:
    """Apply an admin edit. Does not commit.

    There is no row locking here: two admins editing the same order at once
    is last-write-wins.
    """
    order = get_order(order_id)
    now = datetime.utcnow()

    if changes.status is not UNSET:
        new_status = changes.status
        if new_status is None or new_status not in OrderStatus.values():
            raise ValidationError(f"status must be one of {', '.join(OrderStatus.values())}")
        if forward_only and not can_transition(order.status, new_status):
            raise ValidationError(f"Cannot move order from {order.status} to {new_status}")
        if new_status != order.status:
            ORDER_STATUS_CHANGES.labels(new_status).inc()
            logger.info("Order %s status %s -> %s", order.short_id, order.status, new_status)
        order.status = new_status
        if new_status == OrderStatus.SHIPPED.value and order.shipped_at is None:
            order.shipped_at = now
        elif new_status == OrderStatus.DELIVERED.value and order.delivered_at is None:
            order.delivered_at = now

    if changes.tracking_number is not UNSET:
        order.tracking_number = changes.tracking_number
    if changes.carrier is not UNSET:
        order.carrier = changes.carrier
    if changes.estimated_delivery is not UNSET:
        order.estimated_delivery = changes.estimated_delivery

    db.session.flush()
    return order
