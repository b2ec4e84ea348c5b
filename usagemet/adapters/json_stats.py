"""JSON file persistence for aggregate stats."""

import os
import tempfile
from pathlib import Path
from typing import Union

from ..codec import decode_stats, encode_stats
from ..errors import StatsPersistFailure
from ..models import AggregateStats


class JsonStatsFile:
    """Stores the stats object wholesale, replacing the file atomically."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> AggregateStats:
        """Read the stats file.

        Raises ``OSError`` when the file is missing and ``RecordDecodeFailure``
        when its content is unusable.
        """
        return decode_stats(self.path.read_text(encoding="utf-8"))

    def save(self, stats: AggregateStats) -> None:
        text = encode_stats(stats)
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", delete=False, dir=self.path.parent, prefix=f".{self.path.name}.", encoding="utf-8"
            ) as tmp:
                tmp_path = Path(tmp.name)
                tmp.write(text)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, self.path)
        except OSError as exc:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise StatsPersistFailure(
                f"cannot write stats file {self.path}", {"path": str(self.path)}
            ) from exc
