from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the import audit log.

Row validation errors and session-level failures (parse errors, commit errors,
cancellations) are recorded as ErrorRecord lines. row=-1 is the sentinel for
file-level errors where no single data row is responsible.
"""

__all__ = [
    "ErrorRecord",
    "FILE_LEVEL_ROW",
]

FILE_LEVEL_ROW = -1


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: name of the imported file
        kind: import kind (product / material / sale)
        row: 1-based source row. -1 for file-level errors
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: human readable reason
    """
    timestamp: str  # ISO8601 UTC
    file: str
    kind: str
    row: int
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, kind: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            kind=kind,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize to one JSON Lines entry (fixed key set)."""
        return json.dumps(asdict(self), ensure_ascii=False)
