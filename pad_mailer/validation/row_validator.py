from __future__ import annotations

import re
from collections.abc import Sequence

from ..models.row_data import RowData
from ..models.schema import (
    FILE_COLUMNS,
    ColumnType,
    PadPlan,
    column_accepts,
    required_columns,
)
from ..models.validation_error import ValidationError
from .references import is_recognized_reference

"""Row validator.

Pure function from (row, header) to the list of problems found in that row.
Rules run in a fixed order:

1. COD must be present and numeric
2. NOME must be non-empty
3. PAD (trimmed) must be an allowed plan; otherwise stop here, the remaining
   rules depend on a valid plan
4. every file column holding a value must hold a Drive file link
5. every column the plan requires must hold a Drive file link
"""

__all__ = [
    "validate_row",
    "is_numeric",
]


_DECIMAL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$", re.ASCII)


def is_numeric(value: str | None) -> bool:
    """True for plain ASCII decimal numbers, optionally signed or in exponent form."""
    if value is None:
        return False
    return _DECIMAL.match(value.strip()) is not None


def validate_row(row: RowData, header: Sequence[str]) -> list[ValidationError]:
    """Validate one data row against the schema registry.

    Columns are looked up by name; a column missing from ``header`` reads as
    an undefined value and the rules still apply to it.

    Returns:
        Errors in rule order; empty when the row is valid
    """
    n = row.row_number
    errors: list[ValidationError] = []

    def err(message: str) -> None:
        errors.append(ValidationError(row=n, message=f"Row {n}: {message}"))

    cod = row.value(header, "COD")
    nome = row.value(header, "NOME")
    raw_pad = row.value(header, "PAD")
    pad = raw_pad.strip() if raw_pad is not None else None

    if not is_numeric(cod):
        err(f"invalid COD ({cod})")

    if not nome or not nome.strip():
        err("NOME is empty")

    plan = PadPlan.lookup(pad)
    if plan is None:
        err(f"invalid PAD ({pad})")
        return errors

    for col in FILE_COLUMNS:
        val = row.value(header, col)
        if val and column_accepts(col, ColumnType.FILE_REFERENCE) and not is_recognized_reference(val):
            err(f"{col} is not a valid Google Drive link")

    for col in required_columns(plan):
        val = row.value(header, col)
        if not val or not is_recognized_reference(val):
            err(f'missing required field {col} for PAD "{plan.value}"')

    return errors
