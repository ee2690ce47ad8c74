import extensions
from app import create_app
from app.config import TestingConfig
from app.version import API_PREFIX


class RateLimitedConfig(TestingConfig):
    RATELIMIT_ENABLED = True
    CHECKOUT_LIMIT_PER_IP = "2 per minute"


class WhitelistConfig(TestingConfig):
    CORS_ALLOWED_ORIGINS = "http://localhost:3000,https://shop.example.com"


def test_checkout_rate_limit(monkeypatch):
    # the limiter is process-wide; put it back to disabled afterwards
    monkeypatch.setattr(extensions.limiter, "enabled", False)
    app = create_app(RateLimitedConfig)
    client = app.test_client()
    token = client.post("/__auth/login_stub", json={"email": "fast@example.com"}).get_json()["data"]["access"]
    hdr = {"Authorization": f"Bearer {token}"}
    codes = [client.post(f"{API_PREFIX}/customer/checkout", json={}, headers=hdr).status_code for _ in range(3)]
    assert codes[:2] == [400, 400]
    assert codes[2] == 429


def test_cors_preflight_allows_whitelisted_origin():
    client = create_app(WhitelistConfig).test_client()
    resp = client.open(
        "/__ok",
        method="OPTIONS",
        headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "GET"},
    )
    assert resp.status_code in (200, 204)
    assert resp.headers.get("Access-Control-Allow-Origin") == "http://localhost:3000"


def test_cors_preflight_blocks_disallowed_origin():
    client = create_app(WhitelistConfig).test_client()
    resp = client.open(
        "/__ok",
        method="OPTIONS",
        headers={"Origin": "http://evil.test", "Access-Control-Request-Method": "GET"},
    )
    assert "Access-Control-Allow-Origin" not in resp.headers


def test_security_and_trace_headers(client):
    resp = client.get("/__ok", headers={"Origin": "http://any.test", "X-Request-ID": "abc-123"})
    assert resp.headers.get("X-Content-Type-Options") == "nosniff"
    assert resp.headers.get("X-Frame-Options") == "DENY"
    assert resp.headers.get("Referrer-Policy") == "no-referrer"
    assert "X-Request-ID" in resp.headers.get("Access-Control-Expose-Headers", "")
    assert "traceparent" in resp.headers
