"""Pure reporting functions that work on scanned sessions."""

import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .codec import format_timestamp, parse_timestamp, session_to_dict
from .models import (
    APP_OPENED_EVENT,
    CALCULATION_EVENT,
    SHARE_EVENT,
    SLIDER_EVENT,
    Event,
    Session,
    normalize_user_id,
)

CALCULATION_FIELDS = ("price", "down_payment", "rate", "term_years")
SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class EngagementThresholds:
    """Threshold rules used to derive recommendations."""

    low_conversion_rate: float = 50.0
    high_conversion_rate: float = 80.0
    low_calculations_per_session: float = 2.0
    high_calculations_per_session: float = 5.0
    share_nudge_min_calculations: int = 10


def count_events_by_type(sessions: Iterable[Session]) -> Dict[str, int]:
    """Map each event name to its number of occurrences, in first-seen order."""
    counts: Dict[str, int] = {}
    for _, event in _iter_events(sessions):
        counts[event.event_name] = counts.get(event.event_name, 0) + 1
    return counts


def compute_numeric_summary(
    sessions: Iterable[Session],
    event_name: str,
    property_name: str,
) -> Dict:
    """Mean/min/max of one numeric property over events of one type.

    Events where the property is missing or not a finite number are left out
    rather than counted as zero.
    """
    values = [
        float(event.properties[property_name])
        for _, event in _iter_events(sessions)
        if event.event_name == event_name and _is_finite_number(event.properties.get(property_name))
    ]
    if not values:
        return empty_numeric_summary()

    return {
        "count": len(values),
        "mean": sum(values) / len(values),
        "min": min(values),
        "max": max(values),
    }


def compute_conversion(numerator: int, denominator: int) -> Dict:
    """Express ``numerator / denominator`` as a percentage with one decimal.

    A zero denominator yields ``status == "not_computed"`` and ``rate is None``.
    """
    if denominator <= 0:
        return {
            "status": "not_computed",
            "numerator": numerator,
            "denominator": denominator,
            "rate": None,
        }
    return {
        "status": "ok",
        "numerator": numerator,
        "denominator": denominator,
        "rate": round(numerator / denominator * 100, 1),
    }


def compute_funnel(sessions: Iterable[Session], from_event: str, to_event: str) -> Dict:
    """Conversion from ``from_event`` occurrences to ``to_event`` occurrences."""
    counts = count_events_by_type(sessions)
    result = compute_conversion(counts.get(to_event, 0), counts.get(from_event, 0))
    result["from_event"] = from_event
    result["to_event"] = to_event
    return result


def compute_user_rollup(sessions: Iterable[Session], user_id: Any) -> Dict:
    """All sessions of one user; ``42`` and ``"42"`` name the same user."""
    target = normalize_user_id(user_id)
    matched = [] if target is None else [session for session in sessions if session.user_id == target]
    return {
        "user_id": target,
        "sessions_count": len(matched),
        "total_events": sum(len(session.events) for session in matched),
        "sessions": [session_to_dict(session) for session in matched],
    }


def compute_time_range(sessions: Iterable[Session]) -> Dict:
    """Earliest and latest client timestamp and the day span between them."""
    sessions_list = list(sessions)
    timestamps = [
        parsed
        for parsed in (parse_timestamp(event.timestamp) for _, event in _iter_events(sessions_list))
        if parsed is not None
    ]
    if not timestamps:
        return empty_time_range()

    first_event = min(timestamps)
    last_event = max(timestamps)
    days_span = math.ceil((last_event - first_event).total_seconds() / SECONDS_PER_DAY)
    unique_sessions = _count_unique_sessions(sessions_list)

    return {
        "first_event": format_timestamp(first_event),
        "last_event": format_timestamp(last_event),
        "days_span": days_span,
        "sessions_per_day": round(unique_sessions / days_span, 2) if days_span > 0 else None,
    }


def top_active_users(sessions: Iterable[Session], limit: int = 5) -> List[Dict]:
    """Users ranked by event count; ties keep first-encounter order."""
    activity: Counter = Counter()
    for session, _ in _iter_events(sessions):
        if session.user_id is not None:
            activity[session.user_id] += 1

    ranked = sorted(activity.items(), key=lambda item: item[1], reverse=True)
    return [{"user_id": user_id, "events": count} for user_id, count in ranked[: max(limit, 0)]]


def count_property_values(
    sessions: Iterable[Session],
    event_name: str,
    property_name: str,
) -> Dict[str, int]:
    """Occurrences of each value of a categorical property, most frequent first."""
    counts: Counter = Counter()
    for _, event in _iter_events(sessions):
        if event.event_name != event_name:
            continue
        value = event.properties.get(property_name)
        counts[str(value) if value not in (None, "") else "unknown"] += 1
    return dict(sorted(counts.items(), key=lambda item: item[1], reverse=True))


def compute_overview(sessions: Iterable[Session]) -> Dict:
    sessions_list = list(sessions)
    total_events = sum(len(session.events) for session in sessions_list)
    unique_sessions = _count_unique_sessions(sessions_list)
    unique_users = {session.user_id for session in sessions_list if session.user_id is not None}

    return {
        "total_sessions": len(sessions_list),
        "unique_sessions": unique_sessions,
        "unique_users": len(unique_users),
        "total_events": total_events,
        "events_per_session": round(total_events / unique_sessions, 2) if unique_sessions else 0.0,
    }


def compute_event_type_breakdown(sessions: Iterable[Session]) -> List[Dict]:
    counts = count_events_by_type(sessions)
    total = sum(counts.values())
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [
        {
            "event_name": event_name,
            "count": count,
            "percentage": round(count / total * 100, 1) if total else 0.0,
        }
        for event_name, count in ranked
    ]


def compute_calculation_summary(sessions: Iterable[Session]) -> Dict:
    sessions_list = list(sessions)
    total = sum(1 for _, event in _iter_events(sessions_list) if event.event_name == CALCULATION_EVENT)
    summary: Dict[str, Any] = {"total": total}
    for field_name in CALCULATION_FIELDS:
        summary[field_name] = compute_numeric_summary(sessions_list, CALCULATION_EVENT, field_name)
    return summary


def compute_engagement(sessions: Iterable[Session]) -> Dict:
    sessions_list = list(sessions)
    counts = count_events_by_type(sessions_list)
    unique_sessions = _count_unique_sessions(sessions_list)

    app_opened = counts.get(APP_OPENED_EVENT, 0)
    calculations = counts.get(CALCULATION_EVENT, 0)
    shares = counts.get(SHARE_EVENT, 0)

    return {
        "sessions": unique_sessions,
        "app_opened": app_opened,
        "calculations": calculations,
        "shares": shares,
        "conversion": compute_conversion(calculations, app_opened),
        "share_rate": compute_conversion(shares, calculations),
        "calculations_per_session": round(calculations / unique_sessions, 2) if unique_sessions else 0.0,
    }


def evaluate_recommendations(
    engagement: Dict,
    thresholds: Optional[EngagementThresholds] = None,
) -> List[Dict]:
    """Apply threshold rules to an engagement summary."""
    if thresholds is None:
        thresholds = EngagementThresholds()
    if not engagement.get("sessions"):
        return []

    recommendations = []
    conversion = engagement["conversion"]
    if conversion["status"] == "ok":
        if conversion["rate"] < thresholds.low_conversion_rate:
            recommendations.append(
                _recommendation(
                    "low_conversion",
                    "warning",
                    "Low conversion rate: the calculator may be hard to understand",
                )
            )
        elif conversion["rate"] > thresholds.high_conversion_rate:
            recommendations.append(
                _recommendation(
                    "high_conversion",
                    "positive",
                    "Excellent conversion rate: users actively run calculations",
                )
            )

    per_session = engagement["calculations_per_session"]
    if per_session < thresholds.low_calculations_per_session:
        recommendations.append(
            _recommendation(
                "low_calculations_per_session",
                "warning",
                "Few calculations per session: consider a feature to compare scenarios",
            )
        )
    elif per_session > thresholds.high_calculations_per_session:
        recommendations.append(
            _recommendation(
                "high_calculations_per_session",
                "positive",
                "High engagement: users experiment with the parameters",
            )
        )

    if engagement["shares"] == 0 and engagement["calculations"] > thresholds.share_nudge_min_calculations:
        recommendations.append(
            _recommendation(
                "no_shares",
                "warning",
                "Nobody shares calculations: improve the share feature",
            )
        )
    return recommendations


def compute_dashboard(sessions: Iterable[Session], generated_at: Optional[datetime] = None) -> Dict:
    """Composite view served to the application dashboard."""
    sessions_list = list(sessions)
    overview = compute_overview(sessions_list)
    price = compute_numeric_summary(sessions_list, CALCULATION_EVENT, "price")
    rate = compute_numeric_summary(sessions_list, CALCULATION_EVENT, "rate")
    total_calculations = sum(
        1 for _, event in _iter_events(sessions_list) if event.event_name == CALCULATION_EVENT
    )

    return {
        "total_sessions": overview["total_sessions"],
        "total_events": overview["total_events"],
        "unique_users": overview["unique_users"],
        "events_by_type": count_events_by_type(sessions_list),
        "calculations": {
            "total": total_calculations,
            "avg_price": round(price["mean"]),
            "avg_rate": round(rate["mean"], 2),
            "price": price,
            "rate": rate,
        },
        "last_updated": format_timestamp(generated_at or datetime.now(timezone.utc)),
    }


def compute_usage_report(
    sessions: Iterable[Session],
    thresholds: Optional[EngagementThresholds] = None,
    top_users: int = 5,
    generated_at: Optional[datetime] = None,
) -> Dict:
    """Everything the operator report shows, in one structure."""
    sessions_list = list(sessions)
    engagement = compute_engagement(sessions_list)
    return {
        "generated_at": format_timestamp(generated_at or datetime.now(timezone.utc)),
        "overview": compute_overview(sessions_list),
        "events_by_type": compute_event_type_breakdown(sessions_list),
        "calculations": compute_calculation_summary(sessions_list),
        "sliders": count_property_values(sessions_list, SLIDER_EVENT, "slider"),
        "engagement": engagement,
        "time_range": compute_time_range(sessions_list),
        "top_users": top_active_users(sessions_list, limit=top_users),
        "recommendations": evaluate_recommendations(engagement, thresholds),
    }


def empty_numeric_summary() -> Dict:
    """Return empty numeric summary structure."""
    return {"count": 0, "mean": 0.0, "min": 0.0, "max": 0.0}


def empty_time_range() -> Dict:
    """Return empty time range structure."""
    return {
        "first_event": None,
        "last_event": None,
        "days_span": 0,
        "sessions_per_day": None,
    }


def _iter_events(sessions: Iterable[Session]) -> Iterator[Tuple[Session, Event]]:
    for session in sessions:
        for event in session.events:
            yield session, event


def _count_unique_sessions(sessions: List[Session]) -> int:
    return len({session.session_id for session in sessions})


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _recommendation(code: str, level: str, message: str) -> Dict[str, str]:
    return {"code": code, "level": level, "message": message}
