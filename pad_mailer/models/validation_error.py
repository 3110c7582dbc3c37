from __future__ import annotations

from dataclasses import dataclass

"""ValidationError model: one field-level problem found in one sheet row."""

__all__ = [
    "ValidationError",
]


@dataclass(frozen=True)
class ValidationError:
    """Row-level validation message.

    Attributes:
        row: Display row number (header is row 1, first data row is row 2)
        message: Human readable description, already prefixed with the row
    """
    row: int
    message: str

    def __str__(self) -> str:
        return self.message
