import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lorry_rental import main
from lorry_rental.s3_client import ImageStorageError, VehicleImageStorage, image_storage

NEW_VEHICLE = {
    "name": "Ashok Leyland Dost",
    "image": "https://example.com/dost.jpg",
    "description": "A light commercial vehicle",
    "priceDay": 3000,
    "priceHour": 150,
}


def vehicle_id_by_name(client, name):
    return next(v["id"] for v in client.get("/api/vehicles").json() if v["name"] == name)


def test_list_vehicles_is_public(client):
    response = client.get("/api/vehicles")

    assert response.status_code == 200
    vehicles = response.json()
    assert len(vehicles) == 11
    tata = next(v for v in vehicles if v["name"] == "TATA LPT")
    assert tata["priceDay"] == 7000
    assert tata["priceHour"] == 300
    assert tata["available"] is True


def test_list_available_only(client, admin_headers):
    vehicle_id = vehicle_id_by_name(client, "TATA 407")
    client.put(f"/api/vehicles/{vehicle_id}", json={"available": False}, headers=admin_headers)

    names = [v["name"] for v in client.get("/api/vehicles", params={"available_only": True}).json()]

    assert len(names) == 10
    assert "TATA 407" not in names


def test_admin_adds_vehicle(client, admin_headers):
    response = client.post("/api/vehicles", json=NEW_VEHICLE, headers=admin_headers)

    assert response.status_code == 201
    vehicle = response.json()["vehicle"]
    assert vehicle["name"] == NEW_VEHICLE["name"]
    assert vehicle["available"] is True
    assert len(client.get("/api/vehicles").json()) == 12


def test_duplicate_vehicle_name_rejected(client, admin_headers):
    response = client.post("/api/vehicles", json={**NEW_VEHICLE, "name": "TATA LPT"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Vehicle with this name already exists"


@pytest.mark.parametrize("overrides", [{"priceDay": 0}, {"priceHour": -10}, {"image": ""}])
def test_invalid_vehicle_rejected(client, admin_headers, overrides):
    response = client.post("/api/vehicles", json={**NEW_VEHICLE, **overrides}, headers=admin_headers)

    assert response.status_code == 400


def test_customer_cannot_add_vehicle(client, customer_headers):
    response = client.post("/api/vehicles", json=NEW_VEHICLE, headers=customer_headers)

    assert response.status_code == 403


def test_admin_updates_rates(client, admin_headers):
    vehicle_id = vehicle_id_by_name(client, "TATA LPT")

    response = client.put(
        f"/api/vehicles/{vehicle_id}",
        json={"priceDay": 7500, "priceHour": 320},
        headers=admin_headers
    )

    assert response.status_code == 200
    vehicle = response.json()["vehicle"]
    assert vehicle["priceDay"] == 7500
    assert vehicle["priceHour"] == 320
    assert vehicle["name"] == "TATA LPT"


def test_update_unknown_vehicle(client, admin_headers):
    response = client.put("/api/vehicles/9999", json={"available": False}, headers=admin_headers)

    assert response.status_code == 404


def test_customer_cannot_update_vehicle(client, customer_headers):
    vehicle_id = vehicle_id_by_name(client, "TATA LPT")

    response = client.put(f"/api/vehicles/{vehicle_id}", json={"available": False}, headers=customer_headers)

    assert response.status_code == 403


def test_delete_unreferenced_vehicle(client, admin_headers):
    vehicle_id = vehicle_id_by_name(client, "Volvo FM 400 HD")

    response = client.delete(f"/api/vehicles/{vehicle_id}", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Vehicle deleted successfully"
    assert "Volvo FM 400 HD" not in [v["name"] for v in client.get("/api/vehicles").json()]


def test_delete_vehicle_with_bookings_rejected(client, admin_headers, customer_headers, booking_payload):
    client.post("/api/bookings", json=booking_payload, headers=customer_headers)
    vehicle_id = vehicle_id_by_name(client, "TATA LPT")

    response = client.delete(f"/api/vehicles/{vehicle_id}", headers=admin_headers)

    assert response.status_code == 400
    assert "existing bookings" in response.json()["detail"]
    assert "TATA LPT" in [v["name"] for v in client.get("/api/vehicles").json()]


def test_delete_unknown_vehicle(client, admin_headers):
    assert client.delete("/api/vehicles/9999", headers=admin_headers).status_code == 404


def test_customer_cannot_delete_vehicle(client, customer_headers):
    vehicle_id = vehicle_id_by_name(client, "TATA LPT")

    assert client.delete(f"/api/vehicles/{vehicle_id}", headers=customer_headers).status_code == 403


def test_image_upload_without_storage(client, admin_headers):
    vehicle_id = vehicle_id_by_name(client, "TATA LPT")

    response = client.post(
        f"/api/vehicles/{vehicle_id}/image",
        files={"image": ("lpt.png", b"\x89PNG fake", "image/png")},
        headers=admin_headers
    )

    assert response.status_code == 503


def test_image_upload_stores_url(client, admin_headers, monkeypatch):
    async def fake_upload(file, filename):
        return f"https://images.example.com/vehicles/{filename}"

    monkeypatch.setattr(image_storage, "upload_file", fake_upload)
    vehicle_id = vehicle_id_by_name(client, "TATA LPT")

    response = client.post(
        f"/api/vehicles/{vehicle_id}/image",
        files={"image": ("lpt.png", b"\x89PNG fake", "image/png")},
        headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["vehicle"]["image"] == "https://images.example.com/vehicles/lpt.png"


def test_image_upload_storage_failure(client, admin_headers, monkeypatch):
    async def failing_upload(file, filename):
        raise ImageStorageError("bucket gone")

    monkeypatch.setattr(image_storage, "upload_file", failing_upload)
    vehicle_id = vehicle_id_by_name(client, "TATA LPT")

    response = client.post(
        f"/api/vehicles/{vehicle_id}/image",
        files={"image": ("lpt.png", b"\x89PNG fake", "image/png")},
        headers=admin_headers
    )

    assert response.status_code == 502


def test_image_upload_rejects_non_images(client, admin_headers):
    vehicle_id = vehicle_id_by_name(client, "TATA LPT")

    response = client.post(
        f"/api/vehicles/{vehicle_id}/image",
        files={"image": ("notes.txt", b"hello", "text/plain")},
        headers=admin_headers
    )

    assert response.status_code == 400


def test_image_storage_urls():
    storage = VehicleImageStorage(
        bucket_name="fleet",
        region="ru-7",
        access_domain="cdn.example.com",
        access_key_id="key",
        secret_access_key="secret",
    )

    assert storage.enabled
    assert storage.get_file_url("vehicles/a.png") == "https://cdn.example.com/vehicles/a.png"
    assert storage.owns("https://cdn.example.com/vehicles/a.png")
    assert not storage.owns("https://truckcdn.cardekho.com/in/tata/1815-lpt/tata-1815-lpt.jpg")
    assert storage.get_content_type("JPG") == "image/jpeg"


def test_infinite_rate_rejected(client, admin_headers):
    vehicle_id = vehicle_id_by_name(client, "TATA LPT")

    response = client.put(
        f"/api/vehicles/{vehicle_id}",
        content='{"priceDay": 1e309}',
        headers={**admin_headers, "Content-Type": "application/json"}
    )

    assert response.status_code == 400


def test_concurrent_duplicate_name_is_a_conflict(client, admin_headers, monkeypatch):
    async def no_vehicle(db, name):
        return None

    # the pre-insert lookup misses, as when another admin inserts first
    monkeypatch.setattr(main, "get_vehicle_by_name", no_vehicle)

    response = client.post("/api/vehicles", json={**NEW_VEHICLE, "name": "TATA LPT"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Vehicle with this name already exists"


def test_failed_commit_removes_uploaded_image(client, admin_headers, monkeypatch):
    deleted = []

    async def fake_upload(file, filename):
        return "https://images.example.com/vehicles/new.png"

    async def fake_delete(file_url):
        deleted.append(file_url)

    async def failing_commit(self):
        raise SQLAlchemyError("disk full")

    vehicle_id = vehicle_id_by_name(client, "TATA LPT")
    monkeypatch.setattr(image_storage, "upload_file", fake_upload)
    monkeypatch.setattr(image_storage, "delete_file", fake_delete)
    monkeypatch.setattr(AsyncSession, "commit", failing_commit)

    response = client.post(
        f"/api/vehicles/{vehicle_id}/image",
        files={"image": ("lpt.png", b"\x89PNG fake", "image/png")},
        headers=admin_headers
    )

    assert response.status_code == 500
    assert deleted == ["https://images.example.com/vehicles/new.png"]
