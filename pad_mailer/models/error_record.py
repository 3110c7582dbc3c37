from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One record is written per failed row and per batch-fatal error. Batch-level
errors use row=-1 because no single row can be blamed.
"""

__all__ = [
    "ErrorRecord",
    "BATCH_LEVEL_ROW",
]

BATCH_LEVEL_ROW = -1


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        sheet: Spreadsheet id (or workbook path) and range, e.g. "abc123!Junho"
        row: Display row number. -1 for batch-level errors
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human readable reason (validation messages joined with "; ")
    """
    timestamp: str  # ISO8601 UTC
    sheet: str
    row: int
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize to one JSON Lines entry (no extra keys)."""
        return json.dumps(asdict(self), ensure_ascii=False)
