from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from DatabaseManagers.DetectionStore import DetectionStore, DetectionStoreError
from SpeedEvaluators.SpeedEvaluator import SpeedEvaluator
from WebServer.api_server import create_app

from conftest import FakeNotifier

PLATE = "AB12345"
T0 = "2024-05-01T12:00:00.000+02:00"


def post_plate(client: TestClient, timestamp: str, plate: str = PLATE, hostname: str = "cam-a"):
    return client.post("/licenseplate", data={"plate": plate, "timestamp": timestamp, "hostname": hostname})


def test_root_returns_welcome_message(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "Welcome to the Kamerafyr server!"}


def test_health_reports_stored_sightings(client: TestClient) -> None:
    post_plate(client, T0)

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "connected", "stored_sightings": 1}


def test_first_sighting_echoes_submission(client: TestClient, store: DetectionStore) -> None:
    response = post_plate(client, T0)

    assert response.status_code == 200
    assert response.json() == {"plate": PLATE, "timestamp": T0, "hostname": "cam-a"}
    assert store.count(PLATE) == 1


def test_source_field_is_accepted_as_hostname(client: TestClient, store: DetectionStore) -> None:
    response = client.post("/licenseplate", data={"plate": PLATE, "timestamp": T0, "source": "cam-b"})

    assert response.status_code == 200
    assert response.json()["hostname"] == "cam-b"
    assert store.find_any_by_plate(PLATE).source == "cam-b"


def test_duplicate_is_rejected(client: TestClient, store: DetectionStore) -> None:
    post_plate(client, T0)

    response = post_plate(client, T0)

    assert response.status_code == 400
    assert response.json() == {"error": "similar license plate already exists"}
    assert store.count(PLATE) == 0


def test_speeding_plate(client: TestClient, notifier: FakeNotifier) -> None:
    post_plate(client, T0)

    response = post_plate(client, "2024-05-01T12:00:03.000+02:00", hostname="cam-b")

    assert response.status_code == 400
    assert response.json() == {"message": "license plate is speeding"}
    assert len(notifier.calls) == 1
    assert notifier.calls[0][1] == pytest.approx(432.0)


def test_not_speeding_plate(client: TestClient, notifier: FakeNotifier) -> None:
    post_plate(client, T0)

    response = post_plate(client, "2024-05-01T11:59:59.000+02:00", hostname="cam-b")

    assert response.status_code == 400
    assert response.json() == {"message": "license plate is not speeding"}
    assert notifier.calls == []


def test_invalid_timestamp(client: TestClient, store: DetectionStore) -> None:
    post_plate(client, T0)

    response = post_plate(client, "2024-05-01 12:00:03")

    assert response.status_code == 400
    assert response.json() == {"error": "invalid timestamp format"}
    assert store.count(PLATE) == 1


def test_stale_sighting_is_replaced(client: TestClient, store: DetectionStore) -> None:
    post_plate(client, T0)

    later = "2024-05-01T12:10:00.000+02:00"
    response = post_plate(client, later, hostname="cam-b")

    assert response.status_code == 200
    assert response.json() == {"plate": PLATE, "timestamp": later, "hostname": "cam-b"}
    assert store.count(PLATE) == 1
    assert store.find_any_by_plate(PLATE).timestamp == later


def test_malformed_form_body(client: TestClient, store: DetectionStore) -> None:
    response = client.post(
        "/licenseplate",
        content=b"--broken\r\nthis is not multipart",
        headers={"Content-Type": "multipart/form-data; boundary=broken"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "could not parse form"}
    assert store.count() == 0


def test_uploaded_file_is_not_a_plate(client: TestClient, store: DetectionStore) -> None:
    response = client.post(
        "/licenseplate",
        data={"timestamp": T0, "hostname": "cam-a"},
        files={"plate": ("plate.txt", b"AB12345", "text/plain")},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "could not parse form"}
    assert store.count() == 0


class BrokenStore(DetectionStore):
    def count(self, plate: str = None) -> int:
        raise DetectionStoreError("disk I/O error")


def test_health_reports_unavailable_database(tmp_path) -> None:
    store = BrokenStore(str(tmp_path / "broken.db"))
    client = TestClient(create_app(SpeedEvaluator(store, FakeNotifier())))

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json() == {"error": "database unavailable"}


@pytest.mark.parametrize("body", [
    b"plate=%zz&timestamp=2024-05-01T12:00:00.000%2B02:00&hostname=cam-a",
    b"plate=AB%2&timestamp=x",
    b"plate=A;B&timestamp=x",
])
def test_bad_urlencoded_escapes_are_rejected(client: TestClient, store: DetectionStore, body: bytes) -> None:
    response = client.post(
        "/licenseplate",
        content=body,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "could not parse form"}
    assert store.count() == 0


def test_escaped_plate_is_decoded(client: TestClient, store: DetectionStore) -> None:
    response = client.post(
        "/licenseplate",
        content=b"plate=AB%20123&timestamp=2024-05-01T12:00:00.000%2B02:00&hostname=cam-a",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )

    assert response.status_code == 200
    assert response.json()["plate"] == "AB 123"
    assert store.find_any_by_plate("AB 123").timestamp == T0


class FailingInsertStore(DetectionStore):
    def insert(self, event):
        raise DetectionStoreError("database is locked")


def test_store_failure_returns_json_error(tmp_path) -> None:
    store = FailingInsertStore(str(tmp_path / "locked.db"))
    client = TestClient(create_app(SpeedEvaluator(store, FakeNotifier())))

    response = post_plate(client, T0)

    assert response.status_code == 500
    assert response.json() == {"error": "could not process license plate"}
