from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from bizpulse.core.config import Settings
from bizpulse.core.database import Database
from bizpulse.core.rate_limit import RateLimiter
from bizpulse.main import create_app
from bizpulse.models import Product, Transaction, TransactionType
from bizpulse.seed import seed_database, DEMO_EMAIL, DEMO_PASSWORD

from conftest import DEFAULT_PASSWORD


def test_health_reports_database(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "UP"
    assert body["database"] == "CONNECTED"
    assert body["timestamp"].endswith("Z")


def test_unknown_route_uses_envelope(client):
    response = client.get("/api/nowhere")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Route /api/nowhere not found"}


def test_malformed_json_body(client, auth_headers):
    response = client.post(
        "/api/products",
        content=b"{not json",
        headers={**auth_headers, "Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


def _limited_app(logo_storage, **overrides):
    settings = Settings(
        DATABASE_URL="sqlite://",
        SECRET_KEY="test-secret-key-with-at-least-32-characters",
        RATE_LIMIT_ENABLED=True,
        RATE_LIMIT_MAX_REQUESTS=5,
        RATE_LIMIT_AUTH_MAX_REQUESTS=2,
        **overrides
    )
    return create_app(settings=settings, database=Database("sqlite://"), logo_storage=logo_storage)


@pytest.fixture
def limited_client(logo_storage):
    with TestClient(_limited_app(logo_storage)) as test_client:
        yield test_client


def test_auth_routes_have_stricter_limit(limited_client):
    credentials = {"email": "owner@example.com", "password": DEFAULT_PASSWORD}
    assert limited_client.post("/api/auth/login", json=credentials).status_code == 401
    assert limited_client.post("/api/auth/login", json=credentials).status_code == 401

    response = limited_client.post("/api/auth/login", json=credentials)
    assert response.status_code == 429
    assert response.json() == {
        "success": False,
        "message": "Too many requests from this IP, please try again later.",
    }
    assert int(response.headers["Retry-After"]) >= 1
    assert response.headers["X-RateLimit-Limit"] == "2"


def test_general_limit_and_headers(limited_client):
    for remaining in (4, 3, 2, 1, 0):
        response = limited_client.get("/api/products")
        assert response.status_code == 401
        assert response.headers["X-RateLimit-Remaining"] == str(remaining)

    assert limited_client.get("/api/products").status_code == 429
    # Health is outside /api and never limited
    assert limited_client.get("/health").status_code == 200


def test_rotating_forwarded_for_does_not_escape_the_limit(limited_client):
    for n in range(5):
        response = limited_client.get("/api/products", headers={"X-Forwarded-For": f"10.0.0.{n}"})
        assert response.status_code == 401

    response = limited_client.get("/api/products", headers={"X-Forwarded-For": "10.0.0.99", "X-Real-IP": "10.0.0.98"})
    assert response.status_code == 429


def test_trusted_proxy_forwards_client_address(logo_storage):
    # TestClient connects from the peer "testclient"
    with TestClient(_limited_app(logo_storage, TRUSTED_PROXIES="testclient")) as test_client:
        for _ in range(5):
            test_client.get("/api/products", headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
        blocked = test_client.get("/api/products", headers={"X-Forwarded-For": "203.0.113.7"})
        assert blocked.status_code == 429

        other = test_client.get("/api/products", headers={"X-Forwarded-For": "203.0.113.8"})
        assert other.status_code == 401
        assert other.headers["X-RateLimit-Remaining"] == "4"


def test_expired_keys_are_dropped():
    limiter = RateLimiter(max_requests=5, window_seconds=60, auth_max_requests=2)
    stale = datetime.utcnow() - timedelta(seconds=120)
    for n in range(50):
        limiter._requests[f"general:10.0.0.{n}"] = [stale]
    limiter._last_sweep = stale

    allowed, info = limiter._check("general:192.0.2.1", 5)
    assert allowed is True
    assert info["remaining"] == 4
    assert limiter.tracked_keys() == 1


def test_seed_builds_demo_business(database):
    database.connect()
    db = database.session()
    try:
        business = seed_database(db, days=7)
        db.commit()

        assert db.query(Product).filter(Product.business_id == business.id).count() == 15
        incomes = db.query(Transaction).filter(
            Transaction.business_id == business.id,
            Transaction.type == TransactionType.INCOME.value
        ).all()
        assert 14 <= len(incomes) <= 35
        for income in incomes:
            assert sum(item.total_price for item in income.items) == income.amount
        assert db.query(Transaction).filter(Transaction.type == TransactionType.EXPENSE.value).count() == 12

        # Running it again replaces the demo account
        seed_database(db, days=1)
        db.commit()
        assert db.query(Product).count() == 15
    finally:
        db.close()
        database.disconnect()


def test_seeded_account_can_log_in(client, app):
    db = app.state.db.session()
    try:
        seed_database(db, days=1)
        db.commit()
    finally:
        db.close()

    response = client.post("/api/auth/login", json={"email": DEMO_EMAIL, "password": DEMO_PASSWORD})
    assert response.status_code == 200
    assert response.json()["data"]["business"]["name"] == "Demo Restaurant"

