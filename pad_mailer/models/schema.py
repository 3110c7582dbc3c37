from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping

"""Static schema registry for PAD dispatch sheets.

Holds the header contract (exact first row of the sheet), the value markers
accepted per column and the PAD -> required attachment columns table.
Everything here is immutable; the table is checked against the allowed PAD
values when the module is imported.
"""

__all__ = [
    "ColumnType",
    "PadPlan",
    "SchemaRegistryError",
    "HEADER_CONTRACT",
    "COLUMN_TYPES",
    "REQUIRED_FILES",
    "FILE_COLUMNS",
    "allowed_pad_values",
    "column_accepts",
    "required_columns",
    "verify_registry",
]


class SchemaRegistryError(Exception):
    """Raised when the static registry is internally inconsistent."""


class ColumnType(Enum):
    """Value markers a column may carry."""
    NUMERIC = "numeric"
    TEXT = "text"
    CATEGORICAL = "categorical"
    FILE_REFERENCE = "file_reference"


class PadPlan(str, Enum):
    """Allowed values of the PAD (care plan) column."""
    ASSISTENCIA_1 = "ASSISTENCIA 1 - NUTRI / MEDICO / ENFERMEIRO / FISIO / FONO"
    ASSISTENCIA_2 = "ASSISTENCIA 2 - FISIO / FONO"
    ASSISTENCIA_3 = "ASSISTENCIA 3 - FISIO"
    PLANTAO_12H = "12 H"
    PLANTAO_24H = "24 H"
    PONTUAL_3H = "PONTUAL (3H)"

    @classmethod
    def lookup(cls, value: str | None) -> PadPlan | None:
        """Return the plan for a trimmed cell value, or None if unknown."""
        if value is None:
            return None
        try:
            return cls(value.strip())
        except ValueError:
            return None


HEADER_CONTRACT: tuple[str, ...] = (
    "COD",
    "NOME",
    "PAD",
    "FISIO",
    "FONO",
    "NUTRI",
    "MEDICO",
    "ENFERMEIRO",
    "12H",
    "24H",
    "PONTUAL (3H)",
)

# Identity columns come first; everything after them holds file links.
IDENTITY_COLUMNS: tuple[str, ...] = HEADER_CONTRACT[:3]
FILE_COLUMNS: tuple[str, ...] = HEADER_CONTRACT[3:]

COLUMN_TYPES: Mapping[str, frozenset[ColumnType]] = MappingProxyType({
    "COD": frozenset({ColumnType.NUMERIC}),
    "NOME": frozenset({ColumnType.TEXT}),
    "PAD": frozenset({ColumnType.CATEGORICAL}),
    **{col: frozenset({ColumnType.FILE_REFERENCE}) for col in FILE_COLUMNS},
})

REQUIRED_FILES: Mapping[PadPlan, tuple[str, ...]] = MappingProxyType({
    PadPlan.ASSISTENCIA_1: ("NUTRI", "MEDICO", "ENFERMEIRO", "FISIO", "FONO"),
    PadPlan.ASSISTENCIA_2: ("FISIO", "FONO"),
    PadPlan.ASSISTENCIA_3: ("FISIO",),
    PadPlan.PLANTAO_12H: ("12H",),
    PadPlan.PLANTAO_24H: ("24H",),
    PadPlan.PONTUAL_3H: ("PONTUAL (3H)",),
})


def allowed_pad_values() -> frozenset[str]:
    return frozenset(plan.value for plan in PadPlan)


def column_accepts(column: str, marker: ColumnType) -> bool:
    """True if ``column`` is declared with ``marker``. Unknown columns accept nothing."""
    return marker in COLUMN_TYPES.get(column, frozenset())


def required_columns(plan: PadPlan) -> tuple[str, ...]:
    return REQUIRED_FILES[plan]


def verify_registry() -> None:
    """Check the registry tables against each other.

    Raises:
        SchemaRegistryError: if a PAD value has no requirement entry, an entry
            names a column outside the contract, or a required column is not
            typed as a file reference.
    """
    missing = [plan.value for plan in PadPlan if plan not in REQUIRED_FILES]
    if missing:
        raise SchemaRegistryError(f"no requirement entry for PAD values: {missing}")
    if set(COLUMN_TYPES) != set(HEADER_CONTRACT):
        raise SchemaRegistryError("column types do not cover the header contract")
    for plan, columns in REQUIRED_FILES.items():
        for col in columns:
            if col not in HEADER_CONTRACT:
                raise SchemaRegistryError(f"PAD '{plan.value}' requires unknown column {col}")
            if not column_accepts(col, ColumnType.FILE_REFERENCE):
                raise SchemaRegistryError(f"PAD '{plan.value}' requires non-file column {col}")


verify_registry()
