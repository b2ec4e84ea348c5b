"""JSON codec for log records and the stats file."""

import json
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .errors import RecordDecodeFailure
from .models import AggregateStats, Event, Session, UniqueUsers, normalize_session_id, normalize_user_id

EVENT_FIELDS = ("event_name", "properties", "timestamp", "processed_at")

_FRACTION = re.compile(r"\.(\d+)(?=[+-]\d{2}:\d{2}$|$)")


def format_timestamp(value: datetime) -> str:
    """Render a datetime as ISO-8601 UTC with millisecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO string or epoch milliseconds; ``None`` when unusable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        # fromisoformat before 3.11 only takes 3 or 6 fractional digits
        text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def event_to_dict(event: Event) -> Dict[str, Any]:
    data = dict(event.extra)
    data["event_name"] = event.event_name
    data["properties"] = dict(event.properties)
    data["timestamp"] = event.timestamp
    data["processed_at"] = format_timestamp(event.processed_at) if event.processed_at else None
    return data


def session_to_dict(session: Session) -> Dict[str, Any]:
    return {
        "session_id": session.session_id,
        "user_id": session.user_id,
        "user_info": dict(session.user_info) if session.user_info is not None else None,
        "received_at": format_timestamp(session.received_at) if session.received_at else None,
        "events": [event_to_dict(event) for event in session.events],
    }


def encode_session(session: Session) -> str:
    """Encode a session as one line of JSON without the trailing newline.

    Raises ``ValueError``/``TypeError`` when the payload is not representable
    as strict JSON.
    """
    return json.dumps(session_to_dict(session), ensure_ascii=False, allow_nan=False)


def decode_session(line: str) -> Session:
    try:
        raw = json.loads(line)
    except json.JSONDecodeError as exc:
        raise RecordDecodeFailure(f"invalid JSON: {exc.msg}", {"position": exc.pos}) from exc

    if not isinstance(raw, dict):
        raise RecordDecodeFailure("record is not an object")
    raw_events = raw.get("events")
    if not isinstance(raw_events, list):
        raise RecordDecodeFailure("record has no events array")

    events = []
    for index, raw_event in enumerate(raw_events):
        if not isinstance(raw_event, dict):
            raise RecordDecodeFailure("event is not an object", {"index": index})
        events.append(_event_from_dict(raw_event))

    user_info = raw.get("user_info")
    return Session(
        session_id=normalize_session_id(raw.get("session_id")),
        user_id=normalize_user_id(raw.get("user_id")),
        user_info=user_info if isinstance(user_info, dict) else None,
        received_at=parse_timestamp(raw.get("received_at")),
        events=tuple(events),
    )


def _event_from_dict(raw: Mapping[str, Any]) -> Event:
    properties = raw.get("properties")
    return Event(
        event_name=str(raw.get("event_name") or "unknown"),
        properties=properties if isinstance(properties, dict) else {},
        timestamp=raw.get("timestamp"),
        processed_at=parse_timestamp(raw.get("processed_at")),
        extra={key: value for key, value in raw.items() if key not in EVENT_FIELDS},
    )


def encode_stats(stats: AggregateStats) -> str:
    payload = {
        "total_sessions": stats.total_sessions,
        "total_events": stats.total_events,
        "total_calculations": stats.total_calculations,
        "total_shares": stats.total_shares,
        "unique_users": stats.unique_users.to_list(),
    }
    return json.dumps(payload, ensure_ascii=False, indent=2)


def decode_stats(text: str) -> AggregateStats:
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RecordDecodeFailure(f"invalid stats JSON: {exc.msg}") from exc
    if not isinstance(raw, dict):
        raise RecordDecodeFailure("stats file is not an object")

    counters = {}
    for key in ("total_sessions", "total_events", "total_calculations", "total_shares"):
        value = raw.get(key, 0)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise RecordDecodeFailure(f"stats counter {key!r} is not a non-negative integer")
        counters[key] = value

    raw_users = raw.get("unique_users") or []
    # Older files may hold an empty object where a set failed to serialize.
    if isinstance(raw_users, dict) and not raw_users:
        raw_users = []
    if not isinstance(raw_users, list):
        raise RecordDecodeFailure("stats unique_users is not an array")
    users = UniqueUsers(
        user_id for user_id in (normalize_user_id(value) for value in raw_users) if user_id is not None
    )
    return AggregateStats(unique_users=users, **counters)
