from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from conftest import HEADER, FakeFileStore, FakeMailer, file_id, make_row, valid_row
from pad_mailer.logging.error_log import ErrorLogBuffer
from pad_mailer.models.batch_report import BatchStatus
from pad_mailer.models.delivery import Period
from pad_mailer.models.row_data import RowData
from pad_mailer.models.row_outcome import OutcomeStatus, RowOutcome
from pad_mailer.services.dispatcher import BatchDispatcher, OutcomeCollector, preview
from pad_mailer.services.resolver import AttachmentPolicy

PERIOD = Period.parse("2025", "06")
TO = "pad@example.com"


def _dispatcher(tmp_path: Path, files=None, mail=None, **kwargs) -> BatchDispatcher:
    return BatchDispatcher(
        files or FakeFileStore(),
        mail or FakeMailer(),
        TO,
        PERIOD,
        sheet_label="sheet-abc!Junho",
        error_log=ErrorLogBuffer(tmp_path / "logs"),
        **kwargs,
    )


def test_all_rows_succeed(tmp_path: Path):
    mail = FakeMailer()
    d = _dispatcher(tmp_path, mail=mail)
    assert d.status is BatchStatus.IDLE
    rows = [HEADER, valid_row("Ana"), valid_row("Bia", pad="ASSISTENCIA 2 - FISIO / FONO")]
    report = asyncio.run(d.run(rows))
    assert d.status is BatchStatus.COMPLETED
    assert report.status is BatchStatus.COMPLETED
    assert report.all_succeeded
    assert [o.row for o in report.outcomes] == [2, 3]
    assert report.outcomes[1].attachments == ("FISIO.pdf", "FONO.pdf")
    subjects = sorted(m.subject for _, m in mail.sent)
    assert subjects == ["Healthcare - PAD de Ana 2025/06", "Healthcare - PAD de Bia 2025/06"]
    assert all(to == TO for to, _ in mail.sent)
    # nothing failed, nothing written
    assert not (tmp_path / "logs").exists()


def test_header_mismatch_fails_whole_batch(tmp_path: Path):
    files, mail = FakeFileStore(), FakeMailer()
    d = _dispatcher(tmp_path, files=files, mail=mail)
    rows = [list(reversed(HEADER)), valid_row("Ana")]
    report = asyncio.run(d.run(rows))
    assert report.status is BatchStatus.FAILED
    assert report.error_type == "SCHEMA_MISMATCH_ERROR"
    assert len(report.errors) == 1
    assert report.outcomes == ()
    assert files.calls == [] and mail.sent == []
    [log] = list((tmp_path / "logs").glob("errors-*.log"))
    record = json.loads(log.read_text(encoding="utf-8").strip())
    assert record["row"] == -1
    assert record["error_type"] == "SCHEMA_MISMATCH_ERROR"
    assert record["sheet"] == "sheet-abc!Junho"


def test_empty_body_fails_batch(tmp_path: Path):
    report = asyncio.run(_dispatcher(tmp_path).run([HEADER]))
    assert report.status is BatchStatus.FAILED
    assert report.error_type == "EMPTY_INPUT_ERROR"
    assert report.errors == ("spreadsheet has no data rows",)


def test_validation_failure_is_isolated(tmp_path: Path):
    mail = FakeMailer()
    d = _dispatcher(tmp_path, mail=mail)
    rows = [HEADER, make_row(cod="abc", nome="Ana"), valid_row("Bia")]
    report = asyncio.run(d.run(rows))
    assert report.status is BatchStatus.COMPLETED
    first, second = report.outcomes
    assert first.status is OutcomeStatus.VALIDATION_FAILED
    assert first.error_type == "ROW_VALIDATION_ERROR"
    assert first.messages == (
        "Row 2: invalid COD (abc)",
        'Row 2: missing required field 12H for PAD "12 H"',
    )
    assert second.ok
    assert len(mail.sent) == 1


def test_blank_row_gets_a_validation_outcome(tmp_path: Path):
    mail = FakeMailer()
    rows = [HEADER, valid_row("Ana"), [], valid_row("Bia")]
    report = asyncio.run(_dispatcher(tmp_path, mail=mail).run(rows))
    assert report.status is BatchStatus.COMPLETED
    assert [o.row for o in report.outcomes] == [2, 3, 4]
    blank = report.outcomes[1]
    assert blank.status is OutcomeStatus.VALIDATION_FAILED
    assert blank.messages == (
        "Row 3: invalid COD (None)",
        "Row 3: NOME is empty",
        "Row 3: invalid PAD (None)",
    )
    assert len(mail.sent) == 2


def test_blank_only_body_is_not_batch_fatal(tmp_path: Path):
    report = asyncio.run(_dispatcher(tmp_path).run([HEADER, ["", "", ""]]))
    assert report.status is BatchStatus.COMPLETED
    [outcome] = report.outcomes
    assert outcome.status is OutcomeStatus.VALIDATION_FAILED
    assert outcome.messages[0] == "Row 2: invalid COD ()"


def test_send_failure_captures_collaborator_message(tmp_path: Path):
    d = _dispatcher(tmp_path, mail=FakeMailer(fail_for={"Bia"}))
    report = asyncio.run(d.run([HEADER, valid_row("Ana"), valid_row("Bia")]))
    failed = report.failures()
    assert [o.row for o in failed] == [3]
    assert failed[0].status is OutcomeStatus.SEND_FAILED
    assert failed[0].error_type == "SEND_ERROR"
    assert "quota exceeded" in failed[0].reason
    lines = next((tmp_path / "logs").glob("errors-*.log")).read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["row"] for line in lines] == [3]


def test_no_valid_attachment_is_send_failure(tmp_path: Path):
    files = FakeFileStore(failing={file_id("Ana-12H")})
    mail = FakeMailer()
    report = asyncio.run(_dispatcher(tmp_path, files=files, mail=mail).run([HEADER, valid_row("Ana")]))
    [outcome] = report.outcomes
    assert outcome.status is OutcomeStatus.SEND_FAILED
    assert outcome.error_type == "RESOLUTION_ERROR"
    assert outcome.reason == "Row 2: no valid attachment"
    assert mail.sent == []


def test_partial_attachments_best_effort_and_all_required(tmp_path: Path):
    rows = [HEADER, valid_row("Ana", pad="ASSISTENCIA 2 - FISIO / FONO")]
    files = FakeFileStore(failing={file_id("Ana-FONO")})

    report = asyncio.run(_dispatcher(tmp_path, files=files).run(rows))
    [outcome] = report.outcomes
    assert outcome.ok
    assert outcome.attachments == ("FISIO.pdf",)
    assert outcome.missing_attachments == ("FONO",)

    strict = _dispatcher(tmp_path, files=files, policy=AttachmentPolicy.ALL_REQUIRED)
    [outcome] = asyncio.run(strict.run(rows)).outcomes
    assert outcome.status is OutcomeStatus.SEND_FAILED
    assert outcome.error_type == "RESOLUTION_ERROR"


def test_unexpected_exception_becomes_outcome(tmp_path: Path):
    class BrokenMailer(FakeMailer):
        async def send(self, to_address, message):
            raise RuntimeError("socket closed")

    report = asyncio.run(_dispatcher(tmp_path, mail=BrokenMailer()).run([HEADER, valid_row("Ana"), valid_row("Bia")]))
    assert report.status is BatchStatus.COMPLETED
    assert [o.error_type for o in report.outcomes] == ["UNEXPECTED_ERROR", "UNEXPECTED_ERROR"]


def test_unknown_plan_after_validation_is_unexpected(tmp_path: Path, monkeypatch):
    monkeypatch.setattr("pad_mailer.services.dispatcher.validate_row", lambda row, header: [])
    mail = FakeMailer()
    report = asyncio.run(_dispatcher(tmp_path, mail=mail).run([HEADER, make_row(pad="48 H")]))
    [outcome] = report.outcomes
    assert outcome.error_type == "UNEXPECTED_ERROR"
    assert "without a known plan" in outcome.reason
    assert mail.sent == []


def test_concurrency_cap(tmp_path: Path):
    mail = FakeMailer(delay=0.01)
    d = _dispatcher(tmp_path, mail=mail, concurrency=2)
    rows = [HEADER] + [valid_row(f"P{i}") for i in range(6)]
    report = asyncio.run(d.run(rows))
    assert report.success_count == 6
    assert mail.peak_in_flight <= 2
    assert d.last_pool is not None and d.last_pool.peak_in_flight == 2


def test_run_row_sends_only_that_row(tmp_path: Path):
    mail = FakeMailer()
    d = _dispatcher(tmp_path, mail=mail)
    rows = [HEADER, valid_row("Ana"), valid_row("Bia"), valid_row("Caio")]
    report = asyncio.run(d.run_row(rows, 3))
    assert report.status is BatchStatus.COMPLETED
    assert [o.row for o in report.outcomes] == [3]
    assert [m.subject for _, m in mail.sent] == ["Healthcare - PAD de Bia 2025/06"]


def test_run_row_unknown_row(tmp_path: Path):
    d = _dispatcher(tmp_path)
    report = asyncio.run(d.run_row([HEADER, valid_row("Ana")], 9))
    assert report.status is BatchStatus.FAILED
    assert report.errors == ("invalid row 9",)
    assert report.error_type == "INVALID_ROW_ERROR"


def test_preview_collects_errors_without_io():
    rows = [HEADER, valid_row("Ana"), make_row(cod="x", nome="Bia")]
    report = preview(rows)
    assert report.header == tuple(HEADER)
    assert len(report.rows) == 2
    assert not report.ok
    assert [e.row for e in report.errors] == [3, 3]


def test_preview_reports_blank_rows():
    report = preview([HEADER, valid_row("Ana"), [], valid_row("Bia")])
    assert len(report.rows) == 3
    assert [e.row for e in report.errors] == [3, 3, 3]


def test_invalid_concurrency(tmp_path: Path):
    with pytest.raises(ValueError):
        _dispatcher(tmp_path, concurrency=0)


def test_outcome_collector_rejects_duplicates():
    async def scenario():
        c = OutcomeCollector()
        await c.record(RowOutcome.success(3))
        await c.record(RowOutcome.success(2))
        with pytest.raises(ValueError):
            await c.record(RowOutcome.success(2))
        return c.outcomes()

    outcomes = asyncio.run(scenario())
    assert [o.row for o in outcomes] == [2, 3]


def test_process_row_direct(tmp_path: Path):
    d = _dispatcher(tmp_path)
    row = RowData.from_cells(0, valid_row("Ana"))
    outcome = asyncio.run(d.process_row(row, HEADER))
    assert outcome.ok
    assert outcome.attachments == ("12H.pdf",)
