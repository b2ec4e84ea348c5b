"""Port definitions for the event log and stats persistence backends."""

from typing import Iterator, Protocol, Sequence

from .models import AggregateStats, Session


class EventLogStore(Protocol):
    """Append-only session log that adapters can implement for any backend."""

    def append(self, session: Session) -> None:
        """Durably add one session to the end of the log."""

    def read_all(self) -> Sequence[Session]:
        """Return every decodable session in append order."""

    def read_last(self, n: int) -> Sequence[Session]:
        """Return the final ``n`` sessions in append order."""

    def iter_sessions(self) -> Iterator[Session]:
        """Yield sessions in append order."""


class StatsStorage(Protocol):
    """Wholesale persistence for the aggregate stats object."""

    def load(self) -> AggregateStats:
        """Return the persisted stats; raise when missing or unreadable."""

    def save(self, stats: AggregateStats) -> None:
        """Replace the persisted stats; raise ``StatsPersistFailure`` on error."""
