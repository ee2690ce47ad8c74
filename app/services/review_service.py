import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from models import db
from models.order import Order, OrderItem, OrderStatus
from models.review import ProductReview, ReviewVote
from app.errors import AlreadyVotedError, NotFoundError, ValidationError
from app.metrics import REVIEW_VOTES
from app.services import catalog

logger = logging.getLogger(__name__)

VERIFIED_PURCHASE_STATUSES = (
    OrderStatus.CONFIRMED.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
)


def _empty_distribution() -> Dict[int, int]:
    return {5: 0, 4: 0, 3: 0, 2: 0, 1: 0}


@dataclass
class ReviewStats:
    average_rating: float = 0.0
    total_reviews: int = 0
    rating_distribution: Dict[int, int] = field(default_factory=_empty_distribution)

    def to_dict(self):
        return {
            "average_rating": self.average_rating,
            "total_reviews": self.total_reviews,
            "rating_distribution": {str(k): v for k, v in self.rating_distribution.items()},
        }


def list_reviews(product_id) -> List[ProductReview]:
    return db.session.execute(
        db.select(ProductReview)
        .where(ProductReview.product_id == product_id)
        .order_by(ProductReview.created_at.desc(), ProductReview.id)
    ).scalars().all()


def compute_stats(product_id) -> ReviewStats:
    rows = db.session.execute(
        db.select(ProductReview.rating, func.count(ProductReview.id))
        .where(ProductReview.product_id == product_id)
        .group_by(ProductReview.rating)
    ).all()
    stats = ReviewStats()
    weighted = 0
    for rating, count in rows:
        stats.rating_distribution[int(rating)] = int(count)
        stats.total_reviews += int(count)
        weighted += int(rating) * int(count)
    if stats.total_reviews:
        stats.average_rating = weighted / stats.total_reviews
    return stats


def has_purchased(user_id, product_id) -> bool:
    if not user_id:
        return False
    hit = db.session.execute(
        db.select(OrderItem.id)
        .join(Order, Order.id == OrderItem.order_id)
        .where(
            Order.user_id == user_id,
            Order.status.in_(VERIFIED_PURCHASE_STATUSES),
            OrderItem.product_id == product_id,
        )
        .limit(1)
    ).first()
    return hit is not None


def create_review(product_id, rating, content, user=None, title=None, user_name=None) -> ProductReview:
    """Validate and insert a review, then refresh the product's rating columns. Does not commit."""
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")
    content = (content or "").strip()
    if not content:
        raise ValidationError("Review content is required")

    user_id = getattr(user, "id", None)
    name = (user_name or "").strip()
    if not name and user is not None:
        if hasattr(user, "display_name"):
            name = user.display_name()
        else:
            name = (getattr(user, "name", None) or (getattr(user, "email", None) or "").split("@", 1)[0]).strip()
    if not name:
        raise ValidationError("Reviewer name is required")

    catalog.get_product(product_id)

    review = ProductReview(
        product_id=product_id,
        user_id=user_id,
        user_name=name,
        user_email=getattr(user, "email", None),
        rating=rating,
        title=(title or "").strip() or None,
        content=content,
        is_verified_purchase=has_purchased(user_id, product_id),
        helpful_count=0,
    )
    db.session.add(review)
    db.session.flush()
    catalog.refresh_rating(product_id)
    return review




def _has_voted(user_id, review_id) -> bool:
    return db.session.execute(
        db.select(ReviewVote.id).where(ReviewVote.user_id == user_id, ReviewVote.review_id == review_id)
    ).first() is not None


def mark_helpful(review_id, product_id, user_id) -> int:
    """Record one helpful vote and bump the counter in the caller's transaction.

    Returns the new helpful_count. A second vote by the same user raises
    AlreadyVotedError, either up front or when the unique (user_id, review_id)
    constraint rejects a vote that raced past the check. Does not commit; run
    it inside ``transactional()`` so the vote and the increment land together.
    """
    review = db.session.get(ProductReview, review_id)
    if review is None or (product_id and review.product_id != product_id):
        raise NotFoundError("Review not found")
    if _has_voted(user_id, review_id):
        REVIEW_VOTES.labels("duplicate").inc()
        raise AlreadyVotedError("You have already voted on this review")

    db.session.add(ReviewVote(user_id=user_id, review_id=review_id))
    try:
        db.session.flush()
    except IntegrityError as e:
        REVIEW_VOTES.labels("duplicate").inc()
        raise AlreadyVotedError("You have already voted on this review") from e

    db.session.execute(
        update(ProductReview)
        .where(ProductReview.id == review_id)
        .values(helpful_count=ProductReview.helpful_count + 1)
        .execution_options(synchronize_session=False)
    )
    db.session.refresh(review, ["helpful_count"])
    REVIEW_VOTES.labels("recorded").inc()
    return review.helpful_count


def list_user_votes(user_id, product_id: Optional[str] = None) -> List[str]:
    query = db.select(ReviewVote.review_id).where(ReviewVote.user_id == user_id)
    if product_id:
        query = query.join(ProductReview, ProductReview.id == ReviewVote.review_id).where(
            ProductReview.product_id == product_id
        )
    return list(db.session.execute(query.order_by(ReviewVote.created_at.desc())).scalars())


def list_user_votes_detailed(user_id) -> List[Dict]:
    """The user's votes, newest first, each with a summary of the voted review."""
    rows = db.session.execute(
        db.select(ReviewVote, ProductReview)
        .join(ProductReview, ProductReview.id == ReviewVote.review_id)
        .where(ReviewVote.user_id == user_id)
        .order_by(ReviewVote.created_at.desc(), ReviewVote.id)
    ).all()
    return [
        {
            "id": vote.id,
            "review_id": vote.review_id,
            "created_at": vote.created_at,
            "review": {
                "product_id": review.product_id,
                "title": review.title,
                "user_name": review.user_name,
                "rating": review.rating,
            },
        }
        for vote, review in rows
    ]


def list_user_reviews(user_id) -> List[ProductReview]:
    return db.session.execute(
        db.select(ProductReview)
        .where(ProductReview.user_id == user_id)
        .order_by(ProductReview.created_at.desc(), ProductReview.id)
    ).scalars().all()
