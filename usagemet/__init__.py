"""usagemet - append-only usage telemetry log with aggregate stats and reports."""

from .analytics import (
    compute_dashboard,
    compute_funnel,
    compute_numeric_summary,
    compute_time_range,
    compute_usage_report,
    compute_user_rollup,
    count_events_by_type,
    top_active_users,
)
from .ingest import IngestionPipeline
from .service import UsageAnalyticsService
from .stats import AggregateStatsTracker

__all__ = [
    "AggregateStatsTracker",
    "IngestionPipeline",
    "UsageAnalyticsService",
    "count_events_by_type",
    "compute_numeric_summary",
    "compute_funnel",
    "compute_user_rollup",
    "compute_time_range",
    "top_active_users",
    "compute_dashboard",
    "compute_usage_report",
]

__version__ = "0.1.0"
