from datetime import datetime, timezone

import pytest

from usagemet.adapters.json_stats import JsonStatsFile
from usagemet.adapters.jsonl_log import JsonlEventLog
from usagemet.ingest import IngestionPipeline
from usagemet.stats import AggregateStatsTracker

FIXED_NOW = datetime(2026, 1, 8, 12, 0, 0, 123456, tzinfo=timezone.utc)


@pytest.fixture
def event_log(tmp_path):
    return JsonlEventLog(tmp_path / "events.jsonl")


@pytest.fixture
def tracker(tmp_path):
    return AggregateStatsTracker(JsonStatsFile(tmp_path / "stats.json"))


@pytest.fixture
def pipeline(event_log, tracker):
    return IngestionPipeline(event_log, tracker, clock=lambda: FIXED_NOW)
