import logging
import threading
from datetime import datetime, timezone

import pytest

from usagemet.adapters.jsonl_log import JsonlEventLog
from usagemet.codec import encode_session
from usagemet.errors import StoreReadFailure, StoreWriteFailure
from usagemet.models import Event, Session


def _session(session_id, n_events=1, user_id=None):
    return Session(
        session_id=session_id,
        user_id=user_id,
        user_info=None,
        received_at=datetime(2026, 1, 8, 12, 0, tzinfo=timezone.utc),
        events=tuple(
            Event(event_name="app_opened", properties={"i": i}, timestamp=None) for i in range(n_events)
        ),
    )


def test_initialization_creates_empty_log(tmp_path):
    path = tmp_path / "nested" / "events.jsonl"

    log = JsonlEventLog(path)

    assert path.exists()
    assert path.read_bytes() == b""
    assert log.read_all() == []


def test_initialization_never_truncates_existing_log(tmp_path):
    path = tmp_path / "events.jsonl"
    JsonlEventLog(path).append(_session("s1"))

    reopened = JsonlEventLog(path)

    assert [s.session_id for s in reopened.read_all()] == ["s1"]


def test_append_then_read_returns_equal_session(event_log):
    session = _session("s1", n_events=3, user_id="42")

    event_log.append(session)

    assert event_log.read_all() == [session]


def test_each_record_is_one_terminated_line(event_log):
    event_log.append(_session("s1"))
    event_log.append(_session("s2"))

    data = event_log.path.read_text(encoding="utf-8")

    assert data.endswith("\n")
    assert len(data.splitlines()) == 2


def test_concurrent_appends_produce_exactly_n_distinct_records(event_log):
    workers = 40
    barrier = threading.Barrier(workers)

    def append(index):
        barrier.wait()
        event_log.append(_session(f"tag-{index}", n_events=index % 5 + 1))

    threads = [threading.Thread(target=append, args=(i,)) for i in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    sessions = event_log.read_all()
    assert len(sessions) == workers
    assert {s.session_id for s in sessions} == {f"tag-{i}" for i in range(workers)}
    for session in sessions:
        index = int(session.session_id.split("-")[1])
        assert len(session.events) == index % 5 + 1


def test_read_last_bounds(event_log):
    for i in range(10):
        event_log.append(_session(f"s{i}"))

    assert [s.session_id for s in event_log.read_last(3)] == ["s7", "s8", "s9"]
    assert [s.session_id for s in event_log.read_last(100)] == [f"s{i}" for i in range(10)]
    assert event_log.read_last(0) == []


def test_read_last_rejects_negative(event_log):
    with pytest.raises(ValueError):
        event_log.read_last(-1)


def test_malformed_records_are_skipped_with_warning(event_log, caplog):
    event_log.append(_session("s1"))
    with open(event_log.path, "ab") as handle:
        handle.write(b"{broken json\n")
        handle.write(b"\xff\xfe not utf-8\n")
        handle.write(b"\n")
    event_log.append(_session("s2"))

    with caplog.at_level(logging.WARNING, logger="usagemet"):
        sessions = event_log.read_all()

    assert [s.session_id for s in sessions] == ["s1", "s2"]
    assert [s.session_id for s in event_log.read_last(2)] == ["s1", "s2"]
    assert sum("Skipping record" in r.getMessage() for r in caplog.records) >= 2


def test_torn_final_record_is_terminated_on_startup(tmp_path):
    path = tmp_path / "events.jsonl"
    complete = encode_session(_session("s1"))
    path.write_text(complete + "\n" + complete[: len(complete) // 2], encoding="utf-8")

    log = JsonlEventLog(path)
    log.append(_session("s2"))

    assert [s.session_id for s in log.read_all()] == ["s1", "s2"]


def test_append_failure_is_reported(tmp_path):
    path = tmp_path / "events.jsonl"
    log = JsonlEventLog(path)
    path.unlink()
    path.mkdir()

    with pytest.raises(StoreWriteFailure):
        log.append(_session("s1"))


def test_read_failure_is_distinct_from_empty(tmp_path):
    path = tmp_path / "events.jsonl"
    log = JsonlEventLog(path)
    assert log.read_all() == []

    path.unlink()
    path.mkdir()

    with pytest.raises(StoreReadFailure):
        log.read_all()


def test_count_matches_records(event_log):
    for i in range(4):
        event_log.append(_session(f"s{i}"))

    assert event_log.count() == 4
