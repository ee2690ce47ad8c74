import pytest
from sqlalchemy.exc import OperationalError

from app.version import API_PREFIX


def test_404_json_envelope(client):
    resp = client.get('/no/such/route')
    assert resp.status_code == 404
    data = resp.get_json()
    assert data['status'] == 'error'
    assert data['code'] == 404
    assert isinstance(data.get('message'), str)


def test_unexpected_500_json_envelope(client):
    resp = client.get('/__boom')
    assert resp.status_code == 500
    data = resp.get_json()
    assert data['status'] == 'error'
    assert data['code'] == 500
    assert 'RuntimeError' not in data['message']


def test_ok_helper_endpoint(client):
    resp = client.get('/__ok')
    assert resp.status_code == 200
    data = resp.get_json()
    assert data == {
        'status': 'success',
        'message': 'success',
        'data': {'ping': 'pong'}
    }


def test_schema_errors_list_fields(client, login):
    _, hdr = login()
    resp = client.post(f"{API_PREFIX}/customer/checkout", json={"shipping_address": {}}, headers=hdr)
    assert resp.status_code == 400
    data = resp.get_json()
    assert data['code'] == 'validation_error'
    fields = {tuple(e['loc']) for e in data['errors']}
    assert ('payment',) in fields


def test_database_outage_maps_to_503(client, monkeypatch):
    from app.services import catalog

    def down(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(catalog, "list_categories", down)
    resp = client.get(f"{API_PREFIX}/products/categories")
    assert resp.status_code == 503
    assert resp.get_json()['code'] == 'transient'


def test_bad_token_is_401(client):
    resp = client.get(f"{API_PREFIX}/customer/orders", headers={"Authorization": "Bearer nonsense"})
    assert resp.status_code == 401


def test_transactional_maps_integrity_error_to_conflict(app, login, make_product):
    from app.errors import ConflictError
    from app.utils import transactional
    from models import db
    from models.wishlist import WishlistEntry

    user_id, _ = login()
    product = make_product()
    with transactional("Failed to save wishlist"):
        db.session.add(WishlistEntry(user_id=user_id, product_id=product.id))

    with pytest.raises(ConflictError) as exc:
        with transactional("Failed to save wishlist"):
            db.session.add(WishlistEntry(user_id=user_id, product_id=product.id))
    assert exc.value.status == 409
    # rolled back, so the session is usable again
    assert db.session.query(WishlistEntry).count() == 1


def test_transactional_maps_operational_error_to_transient(app):
    from app.errors import TransientError
    from app.utils import transactional

    with pytest.raises(TransientError):
        with transactional("Failed to write"):
            raise OperationalError("UPDATE x", {}, Exception("database is locked"))
