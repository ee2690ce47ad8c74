from .catalog import catalog_bp
from .cart import cart_bp
from .customer import customer_bp
from .admin import admin_bp


__all__ = [
    'catalog_bp',
    'cart_bp',
    'customer_bp',
    'admin_bp',
]
