import pytest
from fastapi.testclient import TestClient

from usagemet.adapters.fastapi_app import create_app
from usagemet.config import Settings
from usagemet.service import UsageAnalyticsService


@pytest.fixture
def settings(tmp_path):
    return Settings(DATA_DIR=tmp_path, RECENT_EVENTS_LIMIT=2)


@pytest.fixture
def client(settings):
    return TestClient(create_app(UsageAnalyticsService.from_settings(settings), settings))


def _batch(session_id, user_id=None, names=("app_opened",)):
    return {
        "session_id": session_id,
        "user_id": user_id,
        "events": [{"event_name": name, "timestamp": "2026-01-08T11:59:00Z"} for name in names],
    }


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_submit_and_stats(client):
    response = client.post("/api/analytics", json=_batch("s1", 42, ("app_opened", "calculation_performed")))

    assert response.status_code == 200
    assert response.json() == {"success": True, "events_received": 2}

    stats = client.get("/api/stats").json()
    assert stats["total_sessions"] == 1
    assert stats["total_calculations"] == 1
    assert stats["unique_users"] == ["42"]


def test_submit_without_events_is_client_error(client, settings):
    response = client.post("/api/analytics", json={"session_id": "x"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid events data"
    assert settings.events_path.read_text(encoding="utf-8") == ""


def test_submit_with_malformed_json_is_client_error(client):
    response = client.post(
        "/api/analytics",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400


def test_store_failure_is_server_error(client, settings):
    settings.events_path.unlink()
    settings.events_path.mkdir()

    response = client.post("/api/analytics", json=_batch("s1"))

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
    assert client.get("/api/stats").json()["total_sessions"] == 0


def test_read_failure_is_server_error(client, settings):
    settings.events_path.unlink()
    settings.events_path.mkdir()

    response = client.get("/api/dashboard")

    assert response.status_code == 500


def test_recent_events_respects_limit_and_default(client):
    for index in range(4):
        client.post("/api/analytics", json=_batch(f"s{index}"))

    default = client.get("/api/events/recent").json()
    explicit = client.get("/api/events/recent", params={"limit": 3}).json()

    assert [e["session_id"] for e in default["events"]] == ["s2", "s3"]
    assert explicit["sessions_count"] == 3
    assert client.get("/api/events/recent", params={"limit": -1}).status_code == 400


def test_user_lookup_treats_numeric_and_string_ids_alike(client):
    client.post("/api/analytics", json=_batch("s1", 42))
    client.post("/api/analytics", json=_batch("s2", "42", ("share_clicked", "app_opened")))
    client.post("/api/analytics", json=_batch("s3", 7))

    result = client.get("/api/user/42").json()

    assert result["user_id"] == "42"
    assert result["sessions_count"] == 2
    assert result["total_events"] == 3


def test_dashboard_and_report_on_empty_log(client):
    dashboard = client.get("/api/dashboard").json()
    report = client.get("/api/report").json()

    assert dashboard["total_events"] == 0
    assert dashboard["events_by_type"] == {}
    assert report["overview"]["total_sessions"] == 0
    assert report["recommendations"] == []
