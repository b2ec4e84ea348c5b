"""Exception taxonomy shared by the store, tracker, pipeline and front ends."""

from typing import Any, Dict, Optional


class UsageMetError(Exception):
    """Base error carrying a human message and structured details."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(UsageMetError):
    """Submitted batch is malformed; nothing was persisted."""


class StoreError(UsageMetError):
    """Event log storage could not be used."""


class StoreWriteFailure(StoreError):
    """Append to the event log failed; the whole batch was rejected."""


class StoreReadFailure(StoreError):
    """Event log could not be read (distinct from an empty log)."""


class RecordDecodeFailure(UsageMetError):
    """One stored record could not be decoded; scans skip it."""


class StatsPersistFailure(UsageMetError):
    """Aggregate stats could not be written after a successful append."""
