# tests/test_health.py
from fastapi import status
from fastapi.testclient import TestClient


def test_root_responds(client: TestClient) -> None:
    """Verify that the root endpoint describes the API."""
    r = client.get("/")
    assert r.status_code == status.HTTP_200_OK
    assert r.json()["name"] == "Scout Queue API"


def test_health_check(client: TestClient) -> None:
    r = client.get("/health")
    assert r.status_code == status.HTTP_200_OK
    assert r.json() == {"status": "ok"}
