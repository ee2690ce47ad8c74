import uuid

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import Numeric

# Money columns come back as Decimal on every backend
MONEY = Numeric(10, 2, asdecimal=True)

db = SQLAlchemy()


def new_id() -> str:
    return str(uuid.uuid4())


# Re-export common models for convenience
from .user import UserProfile  # noqa: E402,F401
from .product import Product  # noqa: E402,F401
from .order import Order, OrderItem, OrderStatus  # noqa: E402,F401
from .review import ProductReview, ReviewVote  # noqa: E402,F401
from .wishlist import WishlistEntry  # noqa: E402,F401
