from app.routes import (
    catalog_bp,
    cart_bp,
    customer_bp,
    admin_bp,
)


def register_api_v1(app):
    """Register blueprint routes under the API version prefix."""
    app.register_blueprint(catalog_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(customer_bp)
    app.register_blueprint(admin_bp)
