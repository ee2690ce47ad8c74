# --- models/product.py ---
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime

from models import db, new_id, MONEY


class Product(db.Model):
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_category", "category"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True, default="")

    # Pricing
    price = db.Column(MONEY, nullable=False)
    original_price = db.Column(MONEY, nullable=True)              # display-only "was" price

    # Inventory
    stock = db.Column(db.Integer, nullable=False, default=0)

    category = db.Column(db.String(100), nullable=True)           # free text
    tags = db.Column(db.JSON, nullable=False, default=list)
    image = db.Column(db.String(500), nullable=True)

    # Denormalized from product_reviews, see catalog.refresh_rating
    rating = db.Column(db.Float, nullable=False, default=0.0)
    review_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def discount_percent(self):
        if not self.original_price or self.original_price <= 0:
            return None
        if self.original_price <= self.price:
            return None
        pct = (Decimal(self.original_price) - Decimal(self.price)) / Decimal(self.original_price) * 100
        return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": float(self.price),
            "original_price": float(self.original_price) if self.original_price is not None else None,
            "discount_percent": self.discount_percent,
            "image": self.image,
            "category": self.category,
            "stock": self.stock,
            "rating": round(self.rating or 0.0, 2),
            "review_count": self.review_count or 0,
            "tags": list(self.tags or []),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
