"""Application service orchestrating the log, the stats tracker and pure analytics."""

from typing import Any, Dict, Optional

from .adapters.json_stats import JsonStatsFile
from .adapters.jsonl_log import JsonlEventLog
from .analytics import (
    EngagementThresholds,
    compute_dashboard,
    compute_usage_report,
    compute_user_rollup,
)
from .codec import event_to_dict, format_timestamp
from .config import Settings
from .ingest import IngestionPipeline
from .ports import EventLogStore
from .stats import AggregateStatsTracker


class UsageAnalyticsService:
    """Facade service that exposes the boundary operations independent of web frameworks."""

    def __init__(
        self,
        store: EventLogStore,
        tracker: AggregateStatsTracker,
        pipeline: Optional[IngestionPipeline] = None,
        thresholds: Optional[EngagementThresholds] = None,
        top_users: int = 5,
    ):
        self.store = store
        self.tracker = tracker
        self.pipeline = pipeline or IngestionPipeline(store, tracker)
        self.thresholds = thresholds or EngagementThresholds()
        self.top_users = top_users

    @classmethod
    def from_settings(cls, settings: Settings) -> "UsageAnalyticsService":
        store = JsonlEventLog(settings.events_path)
        tracker = AggregateStatsTracker(JsonStatsFile(settings.stats_path))
        return cls(
            store,
            tracker,
            thresholds=settings.engagement_thresholds(),
            top_users=settings.TOP_USERS_LIMIT,
        )

    def submit(self, batch: Any) -> Dict:
        result = self.pipeline.ingest(batch)
        return {"success": result.accepted, "events_received": result.events_accepted}

    def get_stats(self) -> Dict:
        return self.tracker.read().to_dict()

    def get_recent_events(self, limit: int) -> Dict:
        """Events of the last ``limit`` sessions, each carrying its session context."""
        sessions = self.store.read_last(limit)
        events = []
        for session in sessions:
            received_at = format_timestamp(session.received_at) if session.received_at else None
            for event in session.events:
                item = event_to_dict(event)
                item["session_id"] = session.session_id
                item["user_id"] = session.user_id
                item["received_at"] = received_at
                events.append(item)
        return {"sessions_count": len(sessions), "count": len(events), "events": events}

    def get_user_data(self, user_id: Any) -> Dict:
        return compute_user_rollup(self.store.iter_sessions(), user_id)

    def get_dashboard(self) -> Dict:
        return compute_dashboard(self.store.iter_sessions())

    def get_report(self) -> Dict:
        return compute_usage_report(
            self.store.iter_sessions(),
            thresholds=self.thresholds,
            top_users=self.top_users,
        )

    def rebuild_stats(self) -> Dict:
        """Operator repair: recompute the stats file from the full log."""
        return self.tracker.rebuild(self.store.iter_sessions()).to_dict()
