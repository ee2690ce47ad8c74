from typing import List

from sqlalchemy.exc import IntegrityError

from models import db
from models.product import Product
from models.wishlist import WishlistEntry
from app.errors import AlreadyInWishlistError, NotFoundError
from app.services import catalog


def list_wishlist(user_id) -> List[dict]:
    rows = db.session.execute(
        db.select(WishlistEntry, Product)
        .join(Product, Product.id == WishlistEntry.product_id)
        .where(WishlistEntry.user_id == user_id)
        .order_by(WishlistEntry.created_at.desc(), WishlistEntry.id)
    ).all()
    return [{**entry.to_dict(), "product": product.to_dict()} for entry, product in rows]


def is_wishlisted(user_id, product_id) -> bool:
    return _find(user_id, product_id) is not None


def _find(user_id, product_id):
    return db.session.execute(
        db.select(WishlistEntry).where(
            WishlistEntry.user_id == user_id, WishlistEntry.product_id == product_id
        )
    ).scalar_one_or_none()


def add_to_wishlist(user_id, product_id) -> WishlistEntry:
    """Does not commit. A duplicate raises AlreadyInWishlistError."""
    catalog.get_product(product_id)
    if _find(user_id, product_id) is not None:
        raise AlreadyInWishlistError("Product is already in your wishlist")
    entry = WishlistEntry(user_id=user_id, product_id=product_id)
    db.session.add(entry)
    try:
        db.session.flush()
    except IntegrityError as e:
        raise AlreadyInWishlistError("Product is already in your wishlist") from e
    return entry


def remove_from_wishlist(user_id, product_id) -> None:
    entry = _find(user_id, product_id)
    if entry is None:
        raise NotFoundError("Product is not in your wishlist")
    db.session.delete(entry)
    db.session.flush()


def toggle_wishlist(user_id, product_id) -> bool:
    """Flip membership; returns True when the product is now wishlisted."""
    if is_wishlisted(user_id, product_id):
        remove_from_wishlist(user_id, product_id)
        return False
    add_to_wishlist(user_id, product_id)
    return True
