"""JSON-lines event log adapter for usagemet."""

import logging
import os
import threading
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from ..codec import decode_session, encode_session
from ..errors import RecordDecodeFailure, StoreReadFailure, StoreWriteFailure
from ..models import Session

logger = logging.getLogger(__name__)


class JsonlEventLog:
    """Append-only session log stored as one JSON object per line.

    Appends and scans share one lock, so a scan never sees a record that is
    still being written. The file is created on first use and never truncated.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._initialize()

    def _initialize(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "ab", buffering=0) as handle:
                size = os.fstat(handle.fileno()).st_size
                if size and not self._ends_with_newline(size):
                    # Terminate a record torn by a crash so the next append starts clean.
                    _write_fully(handle, b"\n")
                    os.fsync(handle.fileno())
                    logger.warning("Repaired unterminated final record in %s", self.path)
        except OSError as exc:
            raise StoreWriteFailure(
                f"cannot initialize event log at {self.path}", {"path": str(self.path)}
            ) from exc
        logger.info("Event log ready at %s", self.path)

    def _ends_with_newline(self, size: int) -> bool:
        with open(self.path, "rb") as reader:
            reader.seek(size - 1)
            return reader.read(1) == b"\n"

    def append(self, session: Session) -> None:
        try:
            line = (encode_session(session) + "\n").encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise StoreWriteFailure(f"session is not serializable: {exc}") from exc

        with self._lock:
            try:
                with open(self.path, "ab", buffering=0) as handle:
                    start = os.fstat(handle.fileno()).st_size
                    try:
                        _write_fully(handle, line)
                        os.fsync(handle.fileno())
                    except OSError:
                        os.ftruncate(handle.fileno(), start)
                        raise
            except OSError as exc:
                logger.error("Failed to append session %s to %s: %s", session.session_id, self.path, exc)
                raise StoreWriteFailure(
                    f"cannot append to event log at {self.path}", {"path": str(self.path)}
                ) from exc

    def read_all(self) -> Sequence[Session]:
        return list(self.iter_sessions())

    def iter_sessions(self) -> Iterator[Session]:
        lines = self._read_lines()
        yield from _decode_lines(enumerate(lines, start=1), self.path)

    def read_last(self, n: int) -> Sequence[Session]:
        if n < 0:
            raise ValueError("n must be non-negative")
        if n == 0:
            return []

        lines = self._read_lines()
        numbered = reversed(list(enumerate(lines, start=1)))
        result: List[Session] = []
        for session in _decode_lines(numbered, self.path):
            result.append(session)
            if len(result) == n:
                break
        result.reverse()
        return result

    def count(self) -> int:
        return sum(1 for _ in self.iter_sessions())

    def _read_lines(self) -> List[bytes]:
        with self._lock:
            try:
                data = self.path.read_bytes()
            except OSError as exc:
                raise StoreReadFailure(
                    f"cannot read event log at {self.path}", {"path": str(self.path)}
                ) from exc
        return data.split(b"\n")


def _decode_lines(numbered_lines: Iterable[Tuple[int, bytes]], path: Optional[Path]) -> Iterator[Session]:
    for line_number, raw in numbered_lines:
        if not raw.strip():
            continue
        try:
            yield decode_session(raw.decode("utf-8"))
        except UnicodeDecodeError as exc:
            logger.warning("Skipping record %s:%d: not valid UTF-8 (%s)", path, line_number, exc.reason)
        except RecordDecodeFailure as exc:
            logger.warning("Skipping record %s:%d: %s", path, line_number, exc.message)


def _write_fully(handle, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = handle.write(view)
        if not written:
            raise OSError("short write to event log")
        view = view[written:]
