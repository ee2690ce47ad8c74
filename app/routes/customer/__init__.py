from flask import Blueprint
from app.version import API_PREFIX
from app.utils import auth_required, role_required

customer_bp = Blueprint("customer", __name__, url_prefix=f"{API_PREFIX}/customer")


@customer_bp.before_request
@auth_required
@role_required(["customer", "admin"])
def _enforce_customer_role():
    """Ensure the requester is an authenticated shopper."""
    return None

from . import checkout  # noqa: E402
from . import orders  # noqa: E402
from . import reviews  # noqa: E402
from . import wishlist  # noqa: E402
