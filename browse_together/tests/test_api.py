from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from browse_together.config import ProxyConfig
from browse_together.errors import BrowserLaunchError
from browse_together.main import create_app
from fakes import FakeSession

TOKEN = "t" * 48


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def app(session, tmp_path):
    config = ProxyConfig(app_env="test", browser_api_token=TOKEN, profile_dir=tmp_path)
    return create_app(config, session=session, grace_period_sec=0)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        test_client.headers["Authorization"] = f"Bearer {TOKEN}"
        yield test_client


def test_goto_returns_success_envelope(client):
    response = client.post("/api/browser/tab1", json={"action": "goto", "url": "https://example.com"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["result"]["url"] == "https://example.com"


def test_failed_action_still_returns_200(client):
    response = client.post("/api/browser/tab1", json={"action": "click", "selector": "#missing"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert "#missing" in body["error"]


def test_list_pages_includes_created_tabs(client):
    client.post("/api/browser/tab1", json={"action": "title"})
    client.post("/api/browser/tab2", json={"action": "title"})

    response = client.get("/api/browser/pages")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert set(body["pages"]) == {"default", "tab1", "tab2"}


def test_close_page_removes_it_from_listing(client):
    client.post("/api/browser/tab1", json={"action": "title"})

    response = client.post("/api/browser/tab1", json={"action": "closePage"})

    assert response.json() == {"success": True}
    assert "tab1" not in client.get("/api/browser/pages").json()["pages"]


@pytest.mark.parametrize("header", [None, "Bearer wrong-token", f"Basic {TOKEN}", "Bearer "])
def test_requests_without_valid_token_are_rejected(app, session, header):
    with TestClient(app) as anonymous:
        headers = {"Authorization": header} if header else {}
        post = anonymous.post("/api/browser/tab1", json={"action": "title"}, headers=headers)
        listing = anonymous.get("/api/browser/pages", headers=headers)
        unknown = anonymous.get("/api/unknown", headers=headers)

    assert post.status_code == 401
    assert listing.status_code == 401
    assert unknown.status_code == 401
    assert post.json() == {"success": False, "error": "Unauthorized"}
    assert session.created == []


def test_malformed_json_is_rejected(client, session):
    response = client.post(
        "/api/browser/tab1",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert session.created == []


def test_invalid_command_reports_field_details(client, session):
    response = client.post("/api/browser/tab1", json={"action": "fill", "selector": "#q"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert any(detail["field"].endswith("text") for detail in body["details"])
    assert session.created == []


def test_unknown_path_returns_404_with_endpoints(client):
    response = client.get("/api/browser/tab1")

    assert response.status_code == 404
    body = response.json()
    assert body["error"] == "Not found"
    assert "/api/browser/pages (GET)" in body["availableEndpoints"]


def test_health_needs_no_token(app):
    with TestClient(app) as anonymous:
        response = anonymous.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_lifespan_starts_and_shuts_down_session(app, session):
    with TestClient(app) as test_client:
        assert session.start_calls == 1
        test_client.headers["Authorization"] = f"Bearer {TOKEN}"
        assert test_client.get("/api/browser/pages").json()["pages"] == ["default"]

    assert session.close_calls == 1
    assert session.default_page.closed
    assert app.state.coordinator.completed


def test_launch_failure_aborts_startup(tmp_path):
    session = FakeSession(fail_start=True)
    config = ProxyConfig(app_env="test", browser_api_token=TOKEN, profile_dir=tmp_path)
    app = create_app(config, session=session, grace_period_sec=0)

    with pytest.raises(BrowserLaunchError, match="executable doesn.t exist"):
        with TestClient(app):
            pass
