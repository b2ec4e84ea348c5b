"""Core domain models used by the ingestion and reporting engine."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

CALCULATION_EVENT = "calculation_performed"
SHARE_EVENT = "share_clicked"
APP_OPENED_EVENT = "app_opened"
SLIDER_EVENT = "slider_changed"


@dataclass(frozen=True)
class Event:
    """A single user-observable action inside a batch."""

    event_name: str
    properties: Mapping[str, Any]
    timestamp: Any
    processed_at: Optional[datetime] = None
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Session:
    """One client batch submission with its events in submission order."""

    session_id: Optional[str]
    user_id: Optional[str]
    user_info: Optional[Mapping[str, Any]]
    received_at: Optional[datetime]
    events: Tuple[Event, ...] = ()


class UniqueUsers:
    """Insertion-ordered set of user identifiers.

    Serialized as a JSON array; membership is checked on every insert so a
    reloaded array can never reintroduce duplicates.
    """

    def __init__(self, user_ids: Iterable[str] = ()):
        self._order: List[str] = []
        self._members = set()
        for user_id in user_ids:
            self.add(user_id)

    def add(self, user_id: str) -> bool:
        if user_id in self._members:
            return False
        self._members.add(user_id)
        self._order.append(user_id)
        return True

    def to_list(self) -> List[str]:
        return list(self._order)

    def copy(self) -> "UniqueUsers":
        return UniqueUsers(self._order)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._members

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._order))

    def __len__(self) -> int:
        return len(self._order)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UniqueUsers):
            return NotImplemented
        return self._members == other._members

    def __repr__(self) -> str:
        return f"UniqueUsers({self._order!r})"


@dataclass
class AggregateStats:
    """Running totals mirrored from the event log."""

    total_sessions: int = 0
    total_events: int = 0
    total_calculations: int = 0
    total_shares: int = 0
    unique_users: UniqueUsers = field(default_factory=UniqueUsers)

    @property
    def unique_users_count(self) -> int:
        return len(self.unique_users)

    def copy(self) -> "AggregateStats":
        return AggregateStats(
            total_sessions=self.total_sessions,
            total_events=self.total_events,
            total_calculations=self.total_calculations,
            total_shares=self.total_shares,
            unique_users=self.unique_users.copy(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_sessions": self.total_sessions,
            "total_events": self.total_events,
            "total_calculations": self.total_calculations,
            "total_shares": self.total_shares,
            "unique_users": self.unique_users.to_list(),
            "unique_users_count": self.unique_users_count,
        }


def normalize_user_id(raw: Any) -> Optional[str]:
    """Map a client-supplied identifier to its canonical string form.

    ``42``, ``42.0`` and ``"42"`` all become ``"42"``; ``None`` and the empty
    string mean anonymous.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        return "true" if raw else "false"
    if isinstance(raw, float) and raw.is_integer():
        return str(int(raw))
    value = str(raw)
    return value if value else None


def normalize_session_id(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    return str(raw)
