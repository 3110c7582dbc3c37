from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .row_outcome import OutcomeStatus, RowOutcome
from .validation_error import ValidationError

"""Batch-level result models.

BatchReport aggregates the outcome of one dispatch run; PreviewReport is the
validate-only variant used before sending.
"""

__all__ = [
    "BatchStatus",
    "BatchReport",
    "PreviewReport",
]


class BatchStatus(Enum):
    """Lifecycle of one batch.

    State transitions: idle -> running -> (completed | failed)

    - FAILED is reached only through the pre-checks (header contract, empty
      sheet, unknown row); once rows are dispatched the batch always completes.
    """
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class BatchReport:
    status: BatchStatus
    outcomes: tuple[RowOutcome, ...] = ()  # sorted by row number
    errors: tuple[str, ...] = ()  # batch-fatal errors (single item when FAILED)
    error_type: str | None = None  # SCHEMA_MISMATCH_ERROR / EMPTY_INPUT_ERROR ...
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def total_rows(self) -> int:
        return len(self.outcomes)

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    @property
    def success_count(self) -> int:
        return self._count(OutcomeStatus.SUCCESS)

    @property
    def validation_failed_count(self) -> int:
        return self._count(OutcomeStatus.VALIDATION_FAILED)

    @property
    def send_failed_count(self) -> int:
        return self._count(OutcomeStatus.SEND_FAILED)

    @property
    def all_succeeded(self) -> bool:
        return self.status is BatchStatus.COMPLETED and self.success_count == self.total_rows

    def failures(self) -> list[RowOutcome]:
        return [o for o in self.outcomes if not o.ok]


@dataclass(frozen=True)
class PreviewReport:
    """Validate-only view of a sheet."""
    header: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    errors: tuple[ValidationError, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.errors
