from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Error log buffering for import sessions.

Row validation errors and session failures are buffered as ErrorRecords and
written as JSON Lines (fixed key set) to `errors-YYYYMMDD-HHMMSS.log` (UTC)
inside the configured directory. The file is created on the first flush that
has something to write.
"""

__all__ = [
    "ErrorLogBuffer",
    "ErrorRecord",
]

DEFAULT_LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for error records. flush() appends them as JSON Lines.

    Not thread-safe; one buffer belongs to one session.
    """
    def __init__(self, directory: Path | str | None = DEFAULT_LOGS_DIR) -> None:
        self.directory = Path(directory) if directory is not None else None
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None

    @property
    def enabled(self) -> bool:
        return self.directory is not None

    @property
    def file_path(self) -> Path | None:
        if self.directory is None:
            return None
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self.directory / f"errors-{stamp}.log"
        return self._file_path

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def extend(self, records: list[ErrorRecord]) -> None:
        self._records.extend(records)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records and clear the buffer.

        Returns the log path, or None when logging to file is disabled (the
        buffer is still cleared).
        """
        fp = self.file_path
        if fp is None or not self._records:
            self._records.clear()
            return fp
        fp.parent.mkdir(parents=True, exist_ok=True)
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
