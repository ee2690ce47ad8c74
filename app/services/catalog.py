from typing import Iterable, Optional

from sqlalchemy import Text, cast, delete, func, or_, update

from models import db
from models.product import Product
from models.review import ProductReview, ReviewVote
from models.wishlist import WishlistEntry
from app.errors import NotFoundError, ValidationError

SORTS = {
    "newest": (Product.created_at.desc(),),
    "price_asc": (Product.price.asc(),),
    "price_desc": (Product.price.desc(),),
    "rating": (Product.rating.desc(), Product.review_count.desc()),
}
MAX_PER_PAGE = 100


def list_products(category: Optional[str] = None, search: Optional[str] = None,
                  sort: str = "newest", page: int = 1, per_page: int = 20):
    if sort not in SORTS:
        raise ValidationError(f"sort must be one of {', '.join(SORTS)}")
    query = db.select(Product)
    if category:
        query = query.where(func.lower(Product.category) == category.strip().lower())
    if search:
        term = f"%{search.strip().lower()}%"
        query = query.where(
            or_(
                func.lower(Product.name).like(term),
                func.lower(Product.description).like(term),
                # tags is a JSON array; its text form is good enough for a substring match
                func.lower(cast(Product.tags, Text)).like(term),
            )
        )
    query = query.order_by(*SORTS[sort], Product.id)
    return db.paginate(query, page=page, per_page=per_page, max_per_page=MAX_PER_PAGE, error_out=False)


def list_categories():
    rows = db.session.execute(
        db.select(Product.category).where(Product.category.isnot(None)).distinct().order_by(Product.category)
    ).scalars()
    return [c for c in rows if c]


def get_product(product_id) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def create_product(data) -> Product:
    product = Product(
        name=data.name,
        description=data.description or "",
        price=data.price,
        original_price=data.original_price,
        image=data.image,
        category=data.category,
        stock=data.stock,
        tags=list(data.tags or []),
    )
    db.session.add(product)
    db.session.flush()
    return product


def update_product(product_id, data) -> Product:
    product = get_product(product_id)
    for field in data.model_fields_set:
        value = getattr(data, field)
        if field in ("name", "price", "stock") and value is None:
            raise ValidationError(f"{field} cannot be cleared")
        if field == "tags":
            value = list(value or [])
        setattr(product, field, value)
    return product


def delete_product(product_id) -> None:
    # Order items keep their own copy of the product, so history is unaffected
    product = get_product(product_id)
    review_ids = db.select(ProductReview.id).where(ProductReview.product_id == product_id)
    db.session.execute(delete(ReviewVote).where(ReviewVote.review_id.in_(review_ids)))
    db.session.execute(delete(ProductReview).where(ProductReview.product_id == product_id))
    db.session.execute(delete(WishlistEntry).where(WishlistEntry.product_id == product_id))
    db.session.delete(product)


def bulk_update_stock(product_ids: Iterable[str], stock: int) -> int:
    if stock is None or stock < 0:
        raise ValidationError("Stock must be zero or more")
    ids = list(dict.fromkeys(product_ids))
    if not ids:
        return 0
    result = db.session.execute(
        update(Product).where(Product.id.in_(ids)).values(stock=stock)
    )
    return result.rowcount


def refresh_rating(product_id) -> None:
    """Recompute the denormalized rating columns from the review rows."""
    avg, count = db.session.execute(
        db.select(func.avg(ProductReview.rating), func.count(ProductReview.id))
        .where(ProductReview.product_id == product_id)
    ).one()
    db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(rating=float(avg or 0.0), review_count=int(count or 0))
    )
