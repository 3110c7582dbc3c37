from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

"""RowData model for PAD dispatch sheets.

RowData is a single data row exactly as the spreadsheet returned it. Cells are
positional; semantic fields are resolved by column name through the header.
"""

__all__ = [
    "RowData",
    "FIRST_DATA_ROW",
]

# Sheet row 1 is the header, so data ordinal 0 is displayed as row 2.
FIRST_DATA_ROW = 2


@dataclass(frozen=True)
class RowData:
    """One data row of the sheet.

    The sheet API trims trailing empty cells, so ``cells`` may be shorter than
    the header; positions past the end are reported as missing (None).
    """
    ordinal: int  # 0-based position within the data slice
    cells: tuple[str, ...]

    @classmethod
    def from_cells(cls, ordinal: int, cells: Sequence[object]) -> RowData:
        return cls(ordinal=ordinal, cells=tuple("" if c is None else str(c) for c in cells))

    @property
    def row_number(self) -> int:
        """Human row number as shown by the spreadsheet."""
        return self.ordinal + FIRST_DATA_ROW

    def value(self, header: Sequence[str], column: str) -> str | None:
        """Cell value for ``column``; None if the column or the cell is absent."""
        try:
            idx = list(header).index(column)
        except ValueError:
            return None
        if idx >= len(self.cells):
            return None
        return self.cells[idx]
