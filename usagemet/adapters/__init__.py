"""Adapters for integrating usagemet with storage and frameworks."""

from .json_stats import JsonStatsFile
from .jsonl_log import JsonlEventLog

__all__ = ["JsonlEventLog", "JsonStatsFile"]
