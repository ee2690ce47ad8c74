import os
import sys
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
os.environ.setdefault('APP_ENV', 'testing')
os.environ.setdefault('CELERY_TASK_ALWAYS_EAGER', '1')

from models import db
from models.product import Product


@pytest.fixture(scope='session')
def app_instance():
    os.environ.setdefault('APP_ENV', 'testing')
    os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
    from app import create_app
    app = create_app()
    app.config.update(
        TESTING=True,
        SQLALCHEMY_DATABASE_URI='sqlite:///:memory:',
        SQLALCHEMY_TRACK_MODIFICATIONS=False
    )
    return app


@pytest.fixture(scope='function')
def app(app_instance):
    with app_instance.app_context():
        db.drop_all()
        db.create_all()
        yield app_instance
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    """Return a helper that creates a user and gives back (user_id, auth headers)."""

    def _login(email="shopper@example.com", role="customer", name=None):
        resp = client.post("/__auth/login_stub", json={"email": email, "role": role, "name": name})
        data = resp.get_json()["data"]
        return data["user_id"], {"Authorization": f"Bearer {data['access']}"}

    return _login


@pytest.fixture
def make_product(app):
    def _make(name="Mug", price="30.00", stock=10, category="Kitchen", **extra):
        product = Product(name=name, price=Decimal(price), stock=stock, category=category, **extra)
        db.session.add(product)
        db.session.commit()
        return product

    return _make
