from flask import Blueprint, request
from app.utils.responses import ok
import logging
from app.utils.jwt import create_access_token, create_refresh_token
from models import db
from models.user import UserProfile


test_support_bp = Blueprint("test_support_bp", __name__)


@test_support_bp.route("/__ok", methods=["GET"])
def __ok():
    return ok({"ping": "pong"})


@test_support_bp.route("/__boom", methods=["GET"])
def __boom():
    raise RuntimeError("boom")


@test_support_bp.route("/__log", methods=["GET"])
def __log():
    logging.getLogger(__name__).info("test log line")
    return ok({"logged": True})


@test_support_bp.route("/__auth/login_stub", methods=["POST"])
def __login_stub():
    """Create (or reuse) a user by e-mail and hand back tokens for it."""
    j = request.get_json() or {}
    email = j.get("email", "shopper@example.com")
    role = j.get("role", "customer")
    user = db.session.execute(
        db.select(UserProfile).where(UserProfile.email == email)
    ).scalar_one_or_none()
    if user is None:
        user = UserProfile(email=email, name=j.get("name"), role=role)
        db.session.add(user)
        db.session.commit()
    return ok({
        "user_id": user.id,
        "access": create_access_token(user.id, user.role, email=user.email),
        "refresh": create_refresh_token(user.id),
    })
