from datetime import datetime

from models import db, new_id


class ProductReview(db.Model):
    __tablename__ = "product_reviews"
    __table_args__ = (
        db.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_product_reviews_rating_range"),
        db.Index("ix_product_reviews_product_created", "product_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(db.String(36), db.ForeignKey("user_profile.id"), nullable=True)  # null for anonymous
    user_name = db.Column(db.String(100), nullable=False)
    user_email = db.Column(db.String(255), nullable=True)
    rating = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(200), nullable=True)
    content = db.Column(db.Text, nullable=False)
    is_verified_purchase = db.Column(db.Boolean, nullable=False, default=False)
    helpful_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        # user_email stays server-side
        return {
            "id": self.id,
            "product_id": self.product_id,
            "user_name": self.user_name,
            "rating": self.rating,
            "title": self.title,
            "content": self.content,
            "is_verified_purchase": bool(self.is_verified_purchase),
            "helpful_count": self.helpful_count or 0,
            "created_at": self.created_at,
        }


class ReviewVote(db.Model):
    __tablename__ = "review_votes"
    __table_args__ = (
        db.UniqueConstraint("user_id", "review_id", name="uq_review_votes_user_review"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("user_profile.id"), nullable=False)
    review_id = db.Column(db.String(36), db.ForeignKey("product_reviews.id", ondelete="CASCADE"), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
