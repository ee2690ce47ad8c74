from flask import g, request

from app.schemas.review import HelpfulVoteRequest, ReviewRequest
from app.services import review_service
from app.utils import ok, role_required, transactional, validate_schema
from . import customer_bp


@customer_bp.route("/products/<product_id>/reviews", methods=["POST"])
@role_required(["customer:write_review", "admin:write_review"])
@validate_schema(ReviewRequest)
def create_review(product_id):
    data = request.validated_data
    with transactional("Failed to create review"):
        review = review_service.create_review(
            product_id,
            rating=data.rating,
            content=data.content,
            user=request.user,
            title=data.title,
            user_name=data.user_name,
        )
    return ok({"review": review.to_dict()}, message="Review submitted", status=201)


@customer_bp.route("/reviews", methods=["GET"])
def my_reviews():
    """Reviews written by the caller, newest first."""
    reviews = review_service.list_user_reviews(g.user_id)
    return ok({"reviews": [r.to_dict() for r in reviews]})


@customer_bp.route("/reviews/<review_id>/helpful", methods=["POST"])
@role_required(["customer:vote_review", "admin:vote_review"])
@validate_schema(HelpfulVoteRequest)
def mark_helpful(review_id):
    """Count one helpful vote per user per review."""
    with transactional("Failed to record vote"):
        count = review_service.mark_helpful(review_id, request.validated_data.product_id, g.user_id)
    return ok({"review_id": review_id, "helpful_count": count})


@customer_bp.route("/votes", methods=["GET"])
def my_votes():
    if request.args.get("detail", "").lower() in ("1", "true", "yes"):
        return ok({"votes": review_service.list_user_votes_detailed(g.user_id)})
    votes = review_service.list_user_votes(g.user_id, request.args.get("product_id"))
    return ok({"review_ids": votes})
