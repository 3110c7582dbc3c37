from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from .validation_error import ValidationError

"""RowOutcome model: terminal classification of one processed row."""

__all__ = [
    "OutcomeStatus",
    "RowOutcome",
    "ROW_VALIDATION_ERROR",
    "RESOLUTION_ERROR",
    "SEND_ERROR",
    "UNEXPECTED_ERROR",
]

# error_type values (UPPER_SNAKE, shared with the JSON Lines error log)
ROW_VALIDATION_ERROR = "ROW_VALIDATION_ERROR"
RESOLUTION_ERROR = "RESOLUTION_ERROR"
SEND_ERROR = "SEND_ERROR"
UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class OutcomeStatus(Enum):
    """Terminal per-row status.

    - SUCCESS: message handed to the mail collaborator
    - VALIDATION_FAILED: row rejected by the validator, nothing fetched or sent
    - SEND_FAILED: row was valid but attachments or delivery failed
    """
    SUCCESS = "success"
    VALIDATION_FAILED = "validation_failed"
    SEND_FAILED = "send_failed"


@dataclass(frozen=True)
class RowOutcome:
    """Outcome of the per-row pipeline. Carries its own row number so the
    collector may receive outcomes in any order."""
    row: int  # display row number
    status: OutcomeStatus
    error_type: str | None = None  # None on success
    messages: tuple[str, ...] = ()
    attachments: tuple[str, ...] = ()  # filenames actually sent
    missing_attachments: tuple[str, ...] = ()  # required columns that did not resolve

    @classmethod
    def success(
        cls,
        row: int,
        attachments: Sequence[str] = (),
        missing_attachments: Sequence[str] = (),
    ) -> RowOutcome:
        return cls(
            row=row,
            status=OutcomeStatus.SUCCESS,
            attachments=tuple(attachments),
            missing_attachments=tuple(missing_attachments),
        )

    @classmethod
    def validation_failed(cls, row: int, errors: Sequence[ValidationError]) -> RowOutcome:
        return cls(
            row=row,
            status=OutcomeStatus.VALIDATION_FAILED,
            error_type=ROW_VALIDATION_ERROR,
            messages=tuple(e.message for e in errors),
        )

    @classmethod
    def send_failed(cls, row: int, error_type: str, message: str) -> RowOutcome:
        return cls(
            row=row,
            status=OutcomeStatus.SEND_FAILED,
            error_type=error_type,
            messages=(message,),
        )

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    @property
    def reason(self) -> str:
        """Human readable failure reason ("" on success)."""
        return "; ".join(self.messages)
