"""Validation, enrichment and commit of incoming event batches."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from .codec import EVENT_FIELDS, encode_session
from .errors import StatsPersistFailure, ValidationError
from .models import Event, Session, normalize_session_id, normalize_user_id
from .ports import EventLogStore
from .stats import AggregateStatsTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    accepted: bool
    events_accepted: int
    session: Session


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IngestionPipeline:
    """Accepts or rejects a whole batch, writing the log before the stats."""

    def __init__(
        self,
        store: EventLogStore,
        tracker: AggregateStatsTracker,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.tracker = tracker
        self.clock = clock

    def ingest(self, raw_batch: Any) -> IngestResult:
        """Validate, enrich and commit one batch.

        Raises ``ValidationError`` before anything is written and
        ``StoreWriteFailure`` when the log append fails. A stats persistence
        failure is logged and does not fail the call.
        """
        session = self.build_session(raw_batch)
        self.store.append(session)

        try:
            self.tracker.update(session)
        except StatsPersistFailure as exc:
            logger.warning("Stats not persisted for session %s: %s", session.session_id, exc.message)

        logger.info("Received %d events from session %s", len(session.events), session.session_id)
        return IngestResult(accepted=True, events_accepted=len(session.events), session=session)

    def build_session(self, raw_batch: Any) -> Session:
        """Validate ``raw_batch`` and return the enriched session."""
        if not isinstance(raw_batch, Mapping):
            raise ValidationError("invalid events data", {"reason": "batch is not an object"})

        raw_events = raw_batch.get("events")
        if not isinstance(raw_events, (list, tuple)):
            raise ValidationError("invalid events data", {"reason": "events must be an array"})

        user_info = raw_batch.get("user_info")
        if user_info is not None and not isinstance(user_info, Mapping):
            raise ValidationError("invalid user_info", {"reason": "user_info must be an object"})

        now = _truncate_to_millis(self.clock())
        events = tuple(_build_event(raw_event, index, now) for index, raw_event in enumerate(raw_events))
        session = Session(
            session_id=normalize_session_id(raw_batch.get("session_id")),
            user_id=normalize_user_id(raw_batch.get("user_id")),
            user_info=dict(user_info) if user_info is not None else None,
            received_at=now,
            events=events,
        )

        try:
            encode_session(session)
        except (TypeError, ValueError) as exc:
            raise ValidationError("invalid events data", {"reason": f"payload is not serializable: {exc}"}) from exc
        return session


def _build_event(raw_event: Any, index: int, processed_at: datetime) -> Event:
    if not isinstance(raw_event, Mapping):
        raise ValidationError("invalid event", {"index": index, "reason": "event is not an object"})

    event_name = raw_event.get("event_name")
    if not isinstance(event_name, str) or not event_name:
        raise ValidationError("invalid event", {"index": index, "reason": "event_name must be a non-empty string"})

    properties = raw_event.get("properties")
    if properties is None:
        properties = {}
    elif not isinstance(properties, Mapping):
        raise ValidationError("invalid event", {"index": index, "reason": "properties must be an object"})

    return Event(
        event_name=event_name,
        properties=dict(properties),
        timestamp=raw_event.get("timestamp"),
        processed_at=processed_at,
        extra={key: value for key, value in raw_event.items() if key not in EVENT_FIELDS},
    )


def _truncate_to_millis(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=(value.microsecond // 1000) * 1000)

