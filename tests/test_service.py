from datetime import datetime, timezone

from usagemet.config import Settings
from usagemet.models import Event, Session
from usagemet.service import UsageAnalyticsService
from usagemet.stats import AggregateStatsTracker


class FakeStore:
    def __init__(self, sessions=()):
        self.sessions = list(sessions)
        self.last_limit = None

    def append(self, session):
        self.sessions.append(session)

    def read_all(self):
        return list(self.sessions)

    def read_last(self, n):
        self.last_limit = n
        return self.sessions[-n:] if n else []

    def iter_sessions(self):
        return iter(list(self.sessions))


class MemoryStorage:
    def __init__(self):
        self.saved = None

    def load(self):
        raise FileNotFoundError("memory")

    def save(self, stats):
        self.saved = stats


def _session(session_id, user_id, *names):
    return Session(
        session_id=session_id,
        user_id=user_id,
        user_info=None,
        received_at=datetime(2026, 1, 8, 12, 0, tzinfo=timezone.utc),
        events=tuple(Event(event_name=name, properties={}, timestamp=None) for name in names),
    )


def _service(sessions=()):
    store = FakeStore(sessions)
    return UsageAnalyticsService(store, AggregateStatsTracker(MemoryStorage())), store


def test_submit_maps_to_events_received():
    service, store = _service()

    result = service.submit({"session_id": "s1", "user_id": 5, "events": [{"event_name": "app_opened"}]})

    assert result == {"success": True, "events_received": 1}
    assert store.sessions[0].user_id == "5"
    assert service.get_stats()["total_events"] == 1
    assert service.get_stats()["unique_users"] == ["5"]
    assert service.get_stats()["unique_users_count"] == 1


def test_recent_events_are_flattened_with_session_context():
    service, store = _service(
        [
            _session("s1", "1", "app_opened"),
            _session("s2", "2", "app_opened", "calculation_performed"),
            _session("s3", None, "share_clicked"),
        ]
    )

    result = service.get_recent_events(2)

    assert store.last_limit == 2
    assert result["sessions_count"] == 2
    assert result["count"] == 3
    assert [(e["session_id"], e["event_name"]) for e in result["events"]] == [
        ("s2", "app_opened"),
        ("s2", "calculation_performed"),
        ("s3", "share_clicked"),
    ]
    assert result["events"][0]["user_id"] == "2"
    assert result["events"][0]["received_at"] == "2026-01-08T12:00:00.000Z"


def test_user_data_and_dashboard_scan_the_store():
    service, _ = _service([_session("s1", "42", "app_opened"), _session("s2", "42", "calculation_performed")])

    user = service.get_user_data(42)
    dashboard = service.get_dashboard()

    assert user["sessions_count"] == 2
    assert user["total_events"] == 2
    assert dashboard["total_events"] == 2
    assert dashboard["unique_users"] == 1


def test_rebuild_stats_replays_the_log():
    service, _ = _service([_session("s1", "a", "app_opened", "share_clicked"), _session("s2", "b", "x")])

    stats = service.rebuild_stats()

    assert stats["total_sessions"] == 2
    assert stats["total_events"] == 3
    assert stats["total_shares"] == 1
    assert stats["unique_users"] == ["a", "b"]
    assert service.get_stats() == stats


def test_from_settings_composes_file_backed_service(tmp_path):
    settings = Settings(DATA_DIR=tmp_path / "data", TOP_USERS_LIMIT=2, LOW_CONVERSION_RATE=10.0)

    service = UsageAnalyticsService.from_settings(settings)
    service.submit({"session_id": "s1", "events": [{"event_name": "app_opened"}]})

    assert settings.events_path.exists()
    assert settings.stats_path.exists()
    assert service.top_users == 2
    assert service.thresholds.low_conversion_rate == 10.0
    assert service.get_report()["overview"]["total_events"] == 1
