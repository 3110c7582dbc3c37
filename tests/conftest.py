# Shared pytest fixtures
from __future__ import annotations

import asyncio
import re
import tempfile
from pathlib import Path

import pytest

from pad_mailer.gateways.base import FileMetadata, NotFoundError, SendError
from pad_mailer.logging.init import reset_logging
from pad_mailer.models.schema import HEADER_CONTRACT

HEADER = list(HEADER_CONTRACT)


def drive_link(file_id: str) -> str:
    return f"https://drive.google.com/file/d/{file_id}/view?usp=sharing"


def file_id(tag: str) -> str:
    """Deterministic Drive-shaped id (at least 28 chars) for ``tag``."""
    return re.sub(r"[^-\w]", "_", tag).ljust(28, "x")


def make_row(cod: str = "7", nome: str = "Ana", pad: str = "12 H", **links: str) -> list[str]:
    """Build a data row; keyword args map column name -> cell (use the
    column name with spaces/parentheses replaced, e.g. H12 for "12H")."""
    aliases = {"H12": "12H", "H24": "24H", "PONTUAL": "PONTUAL (3H)"}
    cells = {col: "" for col in HEADER}
    cells.update({"COD": cod, "NOME": nome, "PAD": pad})
    for key, value in links.items():
        cells[aliases.get(key, key)] = value
    return [cells[col] for col in HEADER]


def valid_row(nome: str, pad: str = "12 H", cod: str = "7") -> list[str]:
    """Row with every file column required by ``pad`` filled with a link."""
    from pad_mailer.models.schema import PadPlan, required_columns

    row = make_row(cod=cod, nome=nome, pad=pad)
    plan = PadPlan.lookup(pad)
    assert plan is not None
    for col in required_columns(plan):
        row[HEADER.index(col)] = drive_link(file_id(f"{nome}-{col}"))
    return row


class FakeFileStore:
    """In-memory file store. Every id resolves to ``<id>.pdf`` unless failing."""

    def __init__(self, failing: set[str] | None = None, names: dict[str, str] | None = None):
        self.failing = set(failing or ())
        self.names = dict(names or {})
        self.calls: list[tuple[str, str]] = []

    async def get_metadata(self, file_id: str) -> FileMetadata:
        self.calls.append(("metadata", file_id))
        await asyncio.sleep(0)
        if file_id in self.failing:
            raise NotFoundError(f"file {file_id} not found")
        return FileMetadata(name=self.names.get(file_id, f"{file_id}.pdf"))

    async def get_content(self, file_id: str) -> bytes:
        self.calls.append(("content", file_id))
        await asyncio.sleep(0)
        if file_id in self.failing:
            raise NotFoundError(f"file {file_id} not found")
        return f"content-{file_id}".encode()


class FakeMailer:
    """Records sent messages; names in ``fail_for`` make send raise SendError."""

    def __init__(self, fail_for: set[str] | None = None, delay: float = 0.0):
        self.fail_for = set(fail_for or ())
        self.delay = delay
        self.sent: list[tuple[str, object]] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def send(self, to_address: str, message) -> None:
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if any(name in message.subject for name in self.fail_for):
                raise SendError("quota exceeded")
            self.sent.append((to_address, message))
        finally:
            self.in_flight -= 1


class FakeSheets:
    def __init__(self, rows: list[list[str]]):
        self.rows = rows
        self.calls: list[tuple[str, str]] = []

    async def get_rows(self, sheet_id: str, sheet_range: str) -> list[list[str]]:
        self.calls.append((sheet_id, sheet_range))
        return self.rows

    async def list_sheets(self, sheet_id: str) -> list[dict[str, object]]:
        return [{"sheetId": 0, "title": "Junho"}, {"sheetId": 1, "title": "Julho"}]


@pytest.fixture(autouse=True)
def _fresh_logging():
    # handlers bind sys.stdout at setup; capsys swaps it per test
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("GOOGLE_AUTHORIZED_USER_FILE", raising=False)
        monkeypatch.delenv("PAD_MAILER_RECIPIENT", raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """spreadsheet_id: sheet-abc123
sheet_range: Junho
recipient: pad@example.com
period:
  year: "2025"
  month: "06"
concurrency: 2
credentials:
  authorized_user_file: token.json
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "mailer.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def header() -> list[str]:
    return list(HEADER)
