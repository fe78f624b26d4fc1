# tests/test_health.py
from unittest import mock

from sqlalchemy.exc import OperationalError


def test_health_reports_database(client):
    r = client.get("/health")
    body = r.get_json()
    assert r.status_code == 200
    assert body["status"] == "OK"
    assert body["database"] == "Connected"
    assert "timestamp" in body


def test_health_when_database_is_down(app, client):
    with mock.patch(
        "agrimarket.routes.root.root_routes.db.session.execute",
        side_effect=OperationalError("SELECT 1", {}, Exception("connection refused")),
    ):
        r = client.get("/health")
    assert r.status_code == 500
    assert r.get_json() == {"status": "ERROR", "database": "Disconnected"}


def test_unknown_endpoint_returns_json(client):
    r = client.get("/api/nowhere")
    assert r.status_code == 404
    assert r.get_json() == {"success": False, "error": "Endpoint not found"}


def test_wrong_method_returns_json(client):
    r = client.delete("/health")
    assert r.status_code == 405
    assert r.get_json()["success"] is False


def test_cors_headers_on_api(client):
    r = client.get("/api/products", headers={"Origin": "http://example.com"})
    assert r.headers.get("Access-Control-Allow-Origin") in ("*", "http://example.com")


def test_missing_upload_is_404(client):
    assert client.get("/uploads/products/nothing.png").status_code == 404
