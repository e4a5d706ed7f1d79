"""
Pytest fixtures for the BizPulse API.

Every test gets its own application over a fresh in-memory SQLite database.
"""
import os
import tempfile

# Required settings must be present before the package is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-at-least-32-characters")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("UPLOAD_PATH", tempfile.mkdtemp(prefix="bizpulse-uploads-"))

import pytest
from fastapi.testclient import TestClient

from bizpulse.core.database import Database
from bizpulse.main import create_app
from bizpulse.services.logo_storage import LocalLogoStorage

DEFAULT_PASSWORD = "secret123"


@pytest.fixture
def database():
    return Database("sqlite://")


@pytest.fixture
def logo_storage(tmp_path):
    return LocalLogoStorage(str(tmp_path / "uploads"), url_prefix="/uploads", max_file_size=1024)


@pytest.fixture
def app(database, logo_storage):
    return create_app(database=database, logo_storage=logo_storage)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def business_payload(**overrides):
    business = {
        "name": "Corner Cafe",
        "category": "restaurant",
        "currency": "USD",
        "timezone": "America/New_York",
    }
    business.update(overrides)
    return business


def register(client, email="owner@example.com", password=DEFAULT_PASSWORD, **business):
    return client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "business": business_payload(**business)},
    )


def auth_headers_for(client, email="owner@example.com", **business):
    response = register(client, email=email, **business)
    assert response.status_code == 201, response.text
    token = response.json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}


def create_product(client, headers, **overrides):
    payload = {
        "name": "Espresso",
        "category": "Coffee",
        "costPrice": 0.7,
        "salePrice": 2.0,
        "stockQuantity": 10,
    }
    payload.update(overrides)
    response = client.post("/api/products", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def create_transaction(client, headers, **overrides):
    payload = {
        "type": "expense",
        "category": "Rent",
        "amount": 100,
        "date": "2024-03-05T12:00:00Z",
        "paymentMethod": "bank_transfer",
    }
    payload.update(overrides)
    return client.post("/api/transactions", json=payload, headers=headers)


@pytest.fixture
def auth_headers(client):
    return auth_headers_for(client)
