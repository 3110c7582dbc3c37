from __future__ import annotations

import re
from dataclasses import dataclass

"""Delivery parameters: the reporting period and the per-row fields that are
interpolated into subject and body."""

__all__ = [
    "Period",
    "RowFields",
]

_YEAR_RE = re.compile(r"^\d{4}$")
_MONTH_RE = re.compile(r"^(0[1-9]|1[0-2])$")


@dataclass(frozen=True)
class Period:
    year: str  # "2025"
    month: str  # "06"

    @classmethod
    def parse(cls, year: object, month: object) -> Period:
        """Build a Period from raw input, rejecting anything but YYYY / MM.

        Raises:
            ValueError: if year is not four digits or month is not 01-12
        """
        y = str(year).strip()
        m = str(month).strip()
        if len(m) == 1 and m.isdigit():
            m = f"0{m}"
        if not _YEAR_RE.match(y):
            raise ValueError(f"invalid year: {year!r}")
        if not _MONTH_RE.match(m):
            raise ValueError(f"invalid month: {month!r}")
        return cls(year=y, month=m)

    def __str__(self) -> str:
        return f"{self.month}/{self.year}"


@dataclass(frozen=True)
class RowFields:
    """Identity fields of a validated row."""
    cod: str
    nome: str
    pad: str
