from __future__ import annotations

from email import message_from_bytes, policy
from pathlib import Path
from unittest.mock import patch

import pandas as pd
import pytest

from conftest import HEADER, FakeFileStore, make_row, valid_row
from pad_mailer.cli.__main__ import main as cli_main

"""Integration: local workbook source + dry run outbox through the real
collaborator wiring. Only the Drive file store is replaced."""


def _write_workbook(path: Path, rows: list[list[str]]) -> Path:
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name="Junho", header=False, index=False)
    return path


@pytest.fixture()
def workbook_config(temp_workdir: Path) -> Path:
    cfg = temp_workdir / "config" / "mailer.yml"
    cfg.write_text(
        """source: workbook
spreadsheet_id: unused
workbook_path: data/pad.xlsx
sheet_range: Junho
recipient: pad@example.com
period:
  year: "2025"
  month: "07"
dry_run: true
outbox_directory: outbox
""",
        encoding="utf-8",
    )
    (temp_workdir / "data").mkdir()
    return cfg


def test_workbook_rows_are_written_to_outbox(workbook_config: Path, temp_workdir: Path, capsys):
    _write_workbook(
        temp_workdir / "data" / "pad.xlsx",
        [HEADER, valid_row("Ana"), valid_row("Bia", pad="ASSISTENCIA 3 - FISIO")],
    )
    with patch("pad_mailer.cli.__main__.GoogleDriveGateway", side_effect=lambda provider: FakeFileStore()):
        code = cli_main([])
    out = capsys.readouterr().out

    assert code == 0
    assert "SUMMARY status=completed rows=2 success=2 validation_failed=0 send_failed=0" in out
    emls = sorted((temp_workdir / "outbox").glob("*.eml"))
    assert len(emls) == 2
    subjects = set()
    for path in emls:
        msg = message_from_bytes(path.read_bytes(), policy=policy.default)
        subjects.add(str(msg["Subject"]))
        assert len(list(msg.iter_attachments())) == 1
    assert subjects == {"Healthcare - PAD de Ana 2025/07", "Healthcare - PAD de Bia 2025/07"}


def test_preview_reports_validation_errors(workbook_config: Path, temp_workdir: Path, capsys):
    _write_workbook(
        temp_workdir / "data" / "pad.xlsx",
        [HEADER, valid_row("Ana"), make_row(cod="abc", nome="Bia")],
    )
    with patch("pad_mailer.cli.__main__.GoogleDriveGateway", side_effect=lambda provider: FakeFileStore()):
        code = cli_main(["--preview"])
    out = capsys.readouterr().out

    assert code == 2
    assert "WARN Row 3: invalid COD (abc)" in out
    assert "SUMMARY preview rows=2 errors=2" in out
    assert not (temp_workdir / "outbox").exists()


def test_list_sheets_of_workbook(workbook_config: Path, temp_workdir: Path, capsys):
    _write_workbook(temp_workdir / "data" / "pad.xlsx", [HEADER, valid_row("Ana")])
    code = cli_main(["--list-sheets"])
    out = capsys.readouterr().out
    assert code == 0
    assert "0\tJunho" in out


def test_corrupt_workbook_exits_fatal(workbook_config: Path, temp_workdir: Path, capsys):
    (temp_workdir / "data" / "pad.xlsx").write_bytes(b"PK\x03\x04 not really a zip")
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR GatewayError: cannot read workbook" in out


def test_list_spreadsheets_needs_google_source(workbook_config: Path, capsys):
    assert cli_main(["--list-spreadsheets"]) == 1
    assert "ERROR spreadsheet listing needs source: google" in capsys.readouterr().out
