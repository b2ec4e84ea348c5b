"""Incrementally maintained aggregate stats backed by a StatsStorage."""

import logging
import threading
from typing import Iterable

from .errors import RecordDecodeFailure, StatsPersistFailure
from .models import CALCULATION_EVENT, SHARE_EVENT, AggregateStats, Session
from .ports import StatsStorage

logger = logging.getLogger(__name__)


class AggregateStatsTracker:
    """Fast-path counters mirroring the event log.

    Every update is a read-modify-write against the storage, so a rebuild
    written by another process is picked up by the next update or read. The
    in-memory copy is used only while the stats file is missing or unreadable.
    A missing or unreadable file at construction starts the tracker from zero;
    repairing it from the log is an explicit ``rebuild`` call, never automatic.
    """

    def __init__(self, storage: StatsStorage):
        self.storage = storage
        self._lock = threading.Lock()
        self._unsaved = False
        self._stats = self._load_or_initialize()

    def _load_or_initialize(self) -> AggregateStats:
        try:
            return self.storage.load()
        except FileNotFoundError:
            logger.info("No stats file found, starting from zero")
        except (OSError, RecordDecodeFailure) as exc:
            logger.warning("Stats file unreadable, re-initializing to zero: %s", exc)

        stats = AggregateStats()
        try:
            self.storage.save(stats)
        except StatsPersistFailure as exc:
            logger.warning("Could not write initial stats file: %s", exc.message)
            self._unsaved = True
        return stats

    def update(self, session: Session) -> AggregateStats:
        """Fold one already-logged session into the totals and persist them.

        The in-memory totals are updated even when persisting fails; the
        ``StatsPersistFailure`` is raised for the caller to log.
        """
        with self._lock:
            self._refresh()
            _apply(self._stats, session)
            snapshot = self._stats.copy()
            self._save(snapshot)
        return snapshot

    def read(self) -> AggregateStats:
        with self._lock:
            self._refresh()
            return self._stats.copy()

    def _save(self, snapshot: AggregateStats) -> None:
        try:
            self.storage.save(snapshot)
        except StatsPersistFailure:
            self._unsaved = True
            raise
        self._unsaved = False

    def _refresh(self) -> None:
        # the file is behind memory until the next successful save
        if self._unsaved:
            return
        try:
            self._stats = self.storage.load()
        except FileNotFoundError:
            logger.debug("Stats file missing, using in-memory totals")
        except (OSError, RecordDecodeFailure) as exc:
            logger.warning("Stats file unreadable, using in-memory totals: %s", exc)

    def rebuild(self, sessions: Iterable[Session]) -> AggregateStats:
        """Reset to zero and replay ``sessions`` in order, then persist once.

        Run this against a quiesced store. A batch ingested while ``sessions``
        is being scanned may be counted twice or not at all.
        """
        stats = AggregateStats()
        for session in sessions:
            _apply(stats, session)

        with self._lock:
            self._stats = stats
            snapshot = stats.copy()
            self._save(snapshot)
        logger.info(
            "Rebuilt stats: %d sessions, %d events, %d users",
            snapshot.total_sessions,
            snapshot.total_events,
            snapshot.unique_users_count,
        )
        return snapshot


def _apply(stats: AggregateStats, session: Session) -> None:
    stats.total_sessions += 1
    stats.total_events += len(session.events)
    for event in session.events:
        if event.event_name == CALCULATION_EVENT:
            stats.total_calculations += 1
        elif event.event_name == SHARE_EVENT:
            stats.total_shares += 1
    if session.user_id is not None:
        stats.unique_users.add(session.user_id)
