from __future__ import annotations

import asyncio
import logging
import zipfile
from pathlib import Path

import pandas as pd

from .base import GatewayError, NotFoundError

"""Local workbook source.

Reads an exported .xlsx copy of the PAD sheet and hands back rows in the
shape the Sheets API uses: lists of strings, trailing blank cells dropped,
trailing blank rows dropped. ``sheet_id`` is the file path and
``sheet_range`` the sheet (tab) name; an A1 suffix such as ``Planilha1!A:K``
is accepted and ignored.
"""

__all__ = [
    "WorkbookGateway",
    "read_workbook_rows",
]

logger = logging.getLogger(__name__)


def _cell_text(value: object) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    if isinstance(value, float) and value.is_integer():
        # openpyxl hands numeric cells back as floats
        return str(int(value))
    return str(value)


def _trim(cells: list[str]) -> list[str]:
    end = len(cells)
    while end and cells[end - 1].strip() == "":
        end -= 1
    return cells[:end]


def _open(path: Path) -> pd.ExcelFile:
    if not path.exists():
        raise NotFoundError(f"workbook not found: {path}")
    try:
        return pd.ExcelFile(path)
    except (ValueError, OSError, zipfile.BadZipFile) as e:
        raise GatewayError(f"cannot read workbook {path}: {e}") from e


def read_workbook_rows(path: Path, sheet_name: str | None = None) -> list[list[str]]:
    """Read one sheet of ``path`` as raw string rows (header included).

    Raises:
        NotFoundError: file or sheet does not exist
        GatewayError: file is not a readable workbook
    """
    xls = _open(path)
    names = [str(n) for n in xls.sheet_names]
    target = sheet_name or names[0]
    if target not in names:
        raise NotFoundError(f"sheet {target!r} not found in {path.name} (sheets: {names})")
    # header=None: the header is row data here, checked later against the contract
    df = xls.parse(target, header=None, dtype=object, keep_default_na=False)
    rows = [_trim([_cell_text(v) for v in raw]) for raw in df.itertuples(index=False, name=None)]
    while rows and not rows[-1]:
        rows.pop()
    logger.debug("read %d rows from %s[%s]", len(rows), path, target)
    return rows


class WorkbookGateway:
    async def get_rows(self, sheet_id: str, sheet_range: str) -> list[list[str]]:
        sheet_name = sheet_range.split("!", 1)[0].strip("'") or None
        return await asyncio.to_thread(read_workbook_rows, Path(sheet_id), sheet_name)

    async def list_sheets(self, sheet_id: str) -> list[dict[str, object]]:
        names = await asyncio.to_thread(lambda: _open(Path(sheet_id)).sheet_names)
        return [{"sheetId": i, "title": str(n)} for i, n in enumerate(names)]
