from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from ..models.row_data import RowData
from ..models.schema import HEADER_CONTRACT

"""Header / data split for rows returned by a spreadsheet gateway.

The first row is the header and must equal the header contract exactly
(names, order and length). Every remaining row is data, blank rows included;
a blank row fails validation like any other incomplete row.
"""

__all__ = [
    "SchemaMismatchError",
    "EmptyInputError",
    "SheetData",
    "split_rows",
    "check_header",
]

SCHEMA_MISMATCH_ERROR = "SCHEMA_MISMATCH_ERROR"
EMPTY_INPUT_ERROR = "EMPTY_INPUT_ERROR"


class SchemaMismatchError(Exception):
    """Raised when the header row does not match the contract. Batch-fatal."""
    error_type = SCHEMA_MISMATCH_ERROR


class EmptyInputError(Exception):
    """Raised when the sheet has no header or no data rows. Batch-fatal."""
    error_type = EMPTY_INPUT_ERROR


@dataclass
class SheetData:
    header: tuple[str, ...]
    rows: list[RowData]  # sheet order


def check_header(header: Sequence[object]) -> tuple[str, ...]:
    """Return the header as a tuple of strings if it matches the contract.

    Raises:
        SchemaMismatchError: on any difference in names, order or length
    """
    cells = tuple("" if c is None else str(c) for c in header)
    if cells != HEADER_CONTRACT:
        raise SchemaMismatchError(
            "invalid header: expected columns "
            f"{list(HEADER_CONTRACT)} in exactly this order, got {list(cells)}"
        )
    return cells


def split_rows(rows: Sequence[Sequence[object]]) -> SheetData:
    """Split raw gateway rows into a validated header and data rows.

    Steps:
    1. Reject an empty sheet
    2. Check the header row against the contract
    3. Reject a sheet without any data row
    4. Wrap every remaining row as RowData, blank ones included
    """
    if not rows:
        raise EmptyInputError("spreadsheet is empty")
    header = check_header(rows[0])
    if len(rows) < 2:
        raise EmptyInputError("spreadsheet has no data rows")
    data = [RowData.from_cells(ordinal, cells) for ordinal, cells in enumerate(rows[1:])]
    return SheetData(header=header, rows=data)
