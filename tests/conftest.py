import os
import tempfile

_tmp_dir = tempfile.mkdtemp(prefix="lorry-rental-tests-")
DB_PATH = os.path.join(_tmp_dir, "test.db")

# must be in place before lorry_rental.config is imported
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{DB_PATH}"
os.environ["SEED_DEFAULT_DATA"] = "true"
os.environ["STRICT_STATUS_TRANSITIONS"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["STATIC_DIR"] = os.path.join(_tmp_dir, "static")
for name in ("S3_BUCKET_NAME", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "S3_ACCESS_DOMAIN", "S3_ENDPOINT_URL"):
    os.environ[name] = ""

import pytest
from fastapi.testclient import TestClient

from lorry_rental.main import app


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    if os.path.exists(DB_PATH):
        os.remove(DB_PATH)


def login(client, username, password):
    response = client.post("/api/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def customer_headers(client):
    return login(client, "nishanth", "nishanth")


@pytest.fixture
def admin_headers(client):
    return login(client, "admin", "admin123")


@pytest.fixture
def booking_payload():
    return {
        "customerName": "Nishanth",
        "contact": "+91 90000 00000",
        "date": "2025-03-01T09:00:00",
        "location": "Pollachi",
        "vehicle": "TATA LPT",
        "rentalType": "daily",
        "duration": 2,
        "paymentMethod": "gpay",
    }
