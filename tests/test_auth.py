import datetime as dt

import jwt

from app.utils import create_access_token, create_refresh_token, decode_token
from app.version import API_PREFIX


def test_access_token_allows_request(client, login):
    _, hdr = login()
    assert client.get(f"{API_PREFIX}/customer/orders", headers=hdr).status_code == 200


def test_expired_access_token_blocked(app, client):
    past = dt.datetime.now(dt.timezone.utc) - dt.timedelta(seconds=1)
    expired = jwt.encode({"sub": "x", "role": "customer", "type": "access", "exp": past}, app.config["JWT_SECRET"], algorithm="HS256")
    r = client.get(f"{API_PREFIX}/customer/orders", headers={"Authorization": f"Bearer {expired}"})
    assert r.status_code == 401


def test_refresh_token_is_not_an_access_token(app, client):
    refresh = create_refresh_token("someone")
    r = client.get(f"{API_PREFIX}/customer/orders", headers={"Authorization": f"Bearer {refresh}"})
    assert r.status_code == 401


def test_token_claims(app):
    payload = decode_token(create_access_token("u1", "admin", email="a@example.com"), expected_type="access")
    assert payload["sub"] == "u1"
    assert payload["role"] == "admin"
    assert payload["email"] == "a@example.com"


def test_token_without_profile_still_resolves_identity(app, client):
    token = create_access_token("ghost", "customer", email="ghost@example.com")
    r = client.get(f"{API_PREFIX}/customer/wishlist", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.get_json()["data"]["items"] == []


def test_role_access(client, login):
    _, customer = login()
    _, admin = login("boss@example.com", role="admin")
    assert client.get(f"{API_PREFIX}/customer/orders", headers=customer).status_code == 200
    assert client.get(f"{API_PREFIX}/customer/orders", headers=admin).status_code == 200
    assert client.get(f"{API_PREFIX}/admin/orders", headers=customer).status_code == 403
    assert client.get(f"{API_PREFIX}/admin/orders", headers=admin).status_code == 200
