"""Visitor cart: line items, derived pricing and per-browser persistence.

The engine owns the in-memory list of line items for one session. Every
mutator returns a freshly derived :class:`Cart`; totals are never cached.
Persistence goes through an injected :class:`CartStore` and is best effort:
a failed save is logged and the in-memory cart stays authoritative.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Callable, Dict, List, Optional

from app.errors import ValidationError

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
SESSION_KEY = "cart"
# Leaves room for signing and the rest of the session inside a 4 KB cookie
MAX_SESSION_CART_BYTES = 3000


def _to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingPolicy:
    tax_rate: Decimal = Decimal("0.08")
    free_shipping_threshold: Decimal = Decimal("50.00")
    flat_shipping_fee: Decimal = Decimal("5.99")

    @classmethod
    def from_config(cls, config) -> "PricingPolicy":
        return cls(
            tax_rate=Decimal(str(config.get("TAX_RATE", cls.tax_rate))),
            free_shipping_threshold=_to_money(config.get("FREE_SHIPPING_THRESHOLD", cls.free_shipping_threshold)),
            flat_shipping_fee=_to_money(config.get("FLAT_SHIPPING_FEE", cls.flat_shipping_fee)),
        )


@dataclass(frozen=True)
class ProductSnapshot:
    """The product as it looked when it was put in the cart."""

    id: str
    name: str
    price: Decimal
    image: Optional[str] = None
    category: Optional[str] = None
    original_price: Optional[Decimal] = None

    @classmethod
    def from_product(cls, product) -> "ProductSnapshot":
        return cls(
            id=str(product.id),
            name=product.name,
            price=_to_money(product.price),
            image=getattr(product, "image", None),
            category=getattr(product, "category", None),
            original_price=_to_money(product.original_price) if getattr(product, "original_price", None) is not None else None,
        )

    @classmethod
    def from_dict(cls, data: Dict) -> "ProductSnapshot":
        original = data.get("original_price")
        return cls(
            id=str(data["id"]),
            name=data["name"],
            price=_to_money(data["price"]),
            image=data.get("image"),
            category=data.get("category"),
            original_price=_to_money(original) if original is not None else None,
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": str(self.price),
            "image": self.image,
            "category": self.category,
            "original_price": str(self.original_price) if self.original_price is not None else None,
        }


@dataclass
class CartLineItem:
    id: str
    product: ProductSnapshot
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.product.price * self.quantity

    @classmethod
    def from_dict(cls, data: Dict) -> "CartLineItem":
        quantity = int(data["quantity"])
        if quantity < 1:
            raise ValueError("stored line item has quantity < 1")
        return cls(id=str(data["id"]), product=ProductSnapshot.from_dict(data["product"]), quantity=quantity)

    def to_dict(self) -> Dict:
        return {"id": self.id, "product": self.product.to_dict(), "quantity": self.quantity}


@dataclass(frozen=True)
class Cart:
    items: tuple = field(default_factory=tuple)
    subtotal: Decimal = Decimal("0.00")
    tax: Decimal = Decimal("0.00")
    shipping: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def to_dict(self) -> Dict:
        return {
            "items": [
                {
                    "id": i.id,
                    "product": {
                        "id": i.product.id,
                        "name": i.product.name,
                        "price": float(i.product.price),
                        "image": i.product.image,
                        "category": i.product.category,
                    },
                    "quantity": i.quantity,
                    "line_total": float(i.line_total),
                }
                for i in self.items
            ],
            "item_count": self.item_count,
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "shipping": float(self.shipping),
            "total": float(self.total),
        }


def calculate_cart(items: List[CartLineItem], policy: PricingPolicy) -> Cart:
    subtotal = sum((i.line_total for i in items), Decimal("0.00"))
    subtotal = _to_money(subtotal)
    tax = _to_money(subtotal * policy.tax_rate)
    if subtotal >= policy.free_shipping_threshold:
        shipping = Decimal("0.00")
    else:
        shipping = policy.flat_shipping_fee
    total = subtotal + tax + shipping
    # Copies, so a returned Cart stays consistent after later mutations
    return Cart(items=tuple(replace(i) for i in items), subtotal=subtotal, tax=tax, shipping=shipping, total=total)


class CartStore:
    """Persistence port for a visitor's line items."""

    def load(self) -> List[Dict]:
        raise NotImplementedError

    def save(self, items: List[Dict]) -> None:
        raise NotImplementedError


class MemoryCartStore(CartStore):
    def __init__(self, items: Optional[List[Dict]] = None):
        self.items = list(items or [])

    def load(self) -> List[Dict]:
        return list(self.items)

    def save(self, items: List[Dict]) -> None:
        self.items = list(items)


class CartStoreFullError(Exception):
    pass


class SessionCartStore(CartStore):
    """Keeps the cart in the signed session cookie, so it lives with the browser.

    Only the line id, quantity and the product id/name/price are stored. Browsers
    drop cookies over about 4 KB without telling the server, so a cart whose
    encoded form exceeds ``max_bytes`` is refused and the previous one is kept.
    """

    STORED_PRODUCT_FIELDS = ("id", "name", "price")

    def __init__(self, session, key: str = SESSION_KEY, max_bytes: int = MAX_SESSION_CART_BYTES):
        self.session = session
        self.key = key
        self.max_bytes = max_bytes

    def load(self) -> List[Dict]:
        return list(self.session.get(self.key) or [])

    def save(self, items: List[Dict]) -> None:
        compact = [
            {
                "id": entry["id"],
                "quantity": entry["quantity"],
                "product": {k: entry["product"].get(k) for k in self.STORED_PRODUCT_FIELDS},
            }
            for entry in items
        ]
        size = len(json.dumps(compact, separators=(",", ":")))
        if size > self.max_bytes:
            raise CartStoreFullError(f"cart needs {size} bytes, session allows {self.max_bytes}")
        self.session[self.key] = compact
        self.session.modified = True


class CartEngine:
    def __init__(self, store: CartStore, policy: Optional[PricingPolicy] = None,
                 notify: Optional[Callable[[str], None]] = None):
        self.store = store
        self.policy = policy or PricingPolicy()
        self.notify = notify or (lambda message: logger.debug("cart notice: %s", message))
        self._items: List[CartLineItem] = self._rehydrate()

    def _rehydrate(self) -> List[CartLineItem]:
        try:
            raw = self.store.load()
            return [CartLineItem.from_dict(entry) for entry in raw]
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            logger.warning("Discarding unreadable stored cart: %s", e)
            return []
        except Exception as e:
            logger.warning("Cart store unavailable, starting empty: %s", e)
            return []

    def _persist(self) -> None:
        try:
            self.store.save([i.to_dict() for i in self._items])
        except CartStoreFullError as e:
            logger.warning("Cart not saved, too large for the session: %s", e)
            self.notify("Your cart is too large to save. Remove some items to keep it.")
        except Exception as e:
            logger.warning("Failed to persist cart: %s", e)

    def _find(self, line_item_id) -> Optional[CartLineItem]:
        return next((i for i in self._items if i.id == str(line_item_id)), None)

    @property
    def cart(self) -> Cart:
        return calculate_cart(self._items, self.policy)

    def add_item(self, product, quantity: int = 1) -> Cart:
        if quantity is None or int(quantity) < 1:
            raise ValidationError("Quantity must be at least 1")
        quantity = int(quantity)
        snapshot = product if isinstance(product, ProductSnapshot) else ProductSnapshot.from_product(product)
        existing = next((i for i in self._items if i.product.id == snapshot.id), None)
        if existing:
            existing.quantity = existing.quantity + quantity
            message = f"Updated {snapshot.name} quantity in cart"
        else:
            self._items.append(CartLineItem(id=str(uuid.uuid4()), product=snapshot, quantity=quantity))
            message = f"Added {snapshot.name} to cart"
        self._persist()
        self.notify(message)
        return self.cart

    def update_quantity(self, line_item_id, quantity: int) -> Cart:
        if quantity < 1:
            return self.remove_item(line_item_id)
        item = self._find(line_item_id)
        if item is None:
            return self.cart
        item.quantity = int(quantity)
        self._persist()
        return self.cart

    def remove_item(self, line_item_id) -> Cart:
        item = self._find(line_item_id)
        if item is None:
            return self.cart
        self._items = [i for i in self._items if i.id != item.id]
        self._persist()
        self.notify(f"Removed {item.product.name} from cart")
        return self.cart

    def clear(self) -> Cart:
        self._items = []
        self._persist()
        self.notify("Cart cleared")
        return self.cart
