"""Tests for system endpoints and the shared error shape."""

from fastapi import status
from fastapi.testclient import TestClient

from resource_api.main import create_app


def test_health(client):
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_root_describes_service(client, test_settings):
    data = client.get("/").json()
    assert data["name"] == test_settings.app_name
    assert data["version"] == test_settings.app_version


def test_unknown_route_uses_error_shape(client):
    response = client.get("/nowhere")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"]["kind"] == "not_found"


def test_wrong_method_uses_error_shape(client):
    response = client.patch("/resources")
    assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
    assert response.json()["error"]["kind"] == "method_not_allowed"


def _boom() -> None:
    raise RuntimeError("kaboom")


def test_unexpected_errors_hide_details(settings_factory):
    app = create_app(settings_factory(DEBUG=False))
    app.add_api_route("/boom", _boom)
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/boom")
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    error = response.json()["error"]
    assert error == {"kind": "internal", "message": "Internal server error"}
    assert "kaboom" not in response.text


def test_unexpected_errors_show_details_in_debug(settings_factory):
    app = create_app(settings_factory(DEBUG=True))
    app.add_api_route("/boom", _boom)
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/boom")
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert "kaboom" in response.json()["error"]["detail"]
