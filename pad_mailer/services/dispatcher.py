from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import UTC, datetime

from ..gateways.base import FileStoreGateway, MailGateway, SendError
from ..logging.error_log import ErrorLogBuffer
from ..models.batch_report import BatchReport, BatchStatus, PreviewReport
from ..models.delivery import Period, RowFields
from ..models.error_record import BATCH_LEVEL_ROW, ErrorRecord
from ..models.row_data import RowData
from ..models.row_outcome import (
    RESOLUTION_ERROR,
    SEND_ERROR,
    UNEXPECTED_ERROR,
    RowOutcome,
)
from ..models.schema import PadPlan, required_columns
from ..sheets.reader import EmptyInputError, SchemaMismatchError, SheetData, split_rows
from ..validation.row_validator import validate_row
from .composer import compose
from .progress import RowProgressTracker
from .resolver import AttachmentPolicy, AttachmentResolver, ResolutionError
from .worker_pool import WorkerPool

"""Batch dispatcher.

Coordinates one batch over the rows of a sheet:
1. Pre-checks the header contract and that there is data (batch-fatal)
2. Runs the per-row pipeline under a fixed-width worker pool:
   validate -> resolve attachments -> compose -> send
3. Collects exactly one outcome per row and returns a BatchReport

A failing row never stops its siblings; the pool always drains.
"""

__all__ = [
    "BatchDispatcher",
    "OutcomeCollector",
    "preview",
    "DEFAULT_CONCURRENCY",
    "INVALID_ROW_ERROR",
]

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 2
INVALID_ROW_ERROR = "INVALID_ROW_ERROR"


class OutcomeCollector:
    """Append-only outcome store for one batch.

    Appends are serialized and a row may be recorded only once.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._outcomes: dict[int, RowOutcome] = {}

    async def record(self, outcome: RowOutcome) -> None:
        async with self._lock:
            if outcome.row in self._outcomes:
                raise ValueError(f"row {outcome.row} already has an outcome")
            self._outcomes[outcome.row] = outcome

    def __len__(self) -> int:
        return len(self._outcomes)

    def outcomes(self) -> tuple[RowOutcome, ...]:
        return tuple(self._outcomes[k] for k in sorted(self._outcomes))


def preview(rows: Sequence[Sequence[object]]) -> PreviewReport:
    """Validate every row without fetching or sending anything.

    Raises:
        SchemaMismatchError: header does not match the contract
        EmptyInputError: sheet has no header or no data rows
    """
    sheet = split_rows(rows)
    errors = []
    for row in sheet.rows:
        errors.extend(validate_row(row, sheet.header))
    return PreviewReport(
        header=sheet.header,
        rows=tuple(row.cells for row in sheet.rows),
        errors=tuple(errors),
    )


class BatchDispatcher:
    """Runs the validate -> resolve -> compose -> send pipeline over a sheet.

    Args:
        files: file store used to download attachments
        mail: mail transport
        recipient: destination address for every message of the batch
        period: reporting period interpolated into subject and body
        concurrency: worker pool width (rows in flight)
        policy: partial attachment policy
        sender: optional From header
        sheet_label: identifies the sheet in the error log
        error_log: JSON Lines error log buffer (flushed at the end of each batch)
    """

    def __init__(
        self,
        files: FileStoreGateway,
        mail: MailGateway,
        recipient: str,
        period: Period,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        policy: AttachmentPolicy = AttachmentPolicy.BEST_EFFORT,
        sender: str | None = None,
        sheet_label: str = "",
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.files = files
        self.mail = mail
        self.recipient = recipient
        self.period = period
        self.concurrency = concurrency
        self.sender = sender
        self.sheet_label = sheet_label
        self.resolver = AttachmentResolver(files, policy)
        self.error_log = error_log if error_log is not None else ErrorLogBuffer()
        self.status = BatchStatus.IDLE
        self.last_pool: WorkerPool[RowOutcome] | None = None

    async def process_row(self, row: RowData, header: Sequence[str]) -> RowOutcome:
        """Per-row pipeline. Expected failures come back as outcomes, not exceptions."""
        errors = validate_row(row, header)
        if errors:
            for e in errors:
                logger.warning(e.message)
            return RowOutcome.validation_failed(row.row_number, errors)

        plan = PadPlan.lookup(row.value(header, "PAD"))
        if plan is None:
            raise ValueError(f"row {row.row_number}: PAD passed validation without a known plan")
        fields = RowFields(
            cod=(row.value(header, "COD") or "").strip(),
            nome=(row.value(header, "NOME") or "").strip(),
            pad=plan.value,
        )

        try:
            attachments, missing = await self.resolver.resolve_with_missing(
                row, header, required_columns(plan)
            )
        except ResolutionError as e:
            logger.warning("%s", e)
            return RowOutcome.send_failed(row.row_number, RESOLUTION_ERROR, str(e))
        if missing:
            logger.warning(
                "row=%d sending without %s (download failed)", row.row_number, ", ".join(missing)
            )

        message = compose(self.recipient, fields, self.period, attachments, sender=self.sender)
        try:
            await self.mail.send(self.recipient, message)
        except SendError as e:
            logger.error("row=%d send failed for %s: %s", row.row_number, fields.nome, e)
            return RowOutcome.send_failed(row.row_number, SEND_ERROR, f"Row {row.row_number}: {e}")

        logger.info(
            "row=%d sent PAD of %s to %s attachments=%s",
            row.row_number,
            fields.nome,
            self.recipient,
            [a.filename for a in attachments],
        )
        return RowOutcome.success(
            row.row_number,
            attachments=[a.filename for a in attachments],
            missing_attachments=missing,
        )

    async def _run_one(
        self,
        row: RowData,
        header: Sequence[str],
        collector: OutcomeCollector,
        progress: RowProgressTracker,
    ) -> RowOutcome:
        try:
            outcome = await self.process_row(row, header)
        except Exception as e:
            logger.exception("row=%d unexpected failure", row.row_number)
            outcome = RowOutcome.send_failed(
                row.row_number, UNEXPECTED_ERROR, f"Row {row.row_number}: {e}"
            )
        await collector.record(outcome)
        progress.finish_row(success=outcome.ok)
        return outcome

    def _fail(self, error_type: str, message: str, start: datetime) -> BatchReport:
        self.status = BatchStatus.FAILED
        logger.error("batch failed: %s", message)
        self.error_log.append(ErrorRecord.create(self.sheet_label, BATCH_LEVEL_ROW, error_type, message))
        self._flush_error_log()
        return BatchReport(
            status=BatchStatus.FAILED,
            errors=(message,),
            error_type=error_type,
            start_time=start,
            end_time=datetime.now(UTC),
        )

    def _flush_error_log(self) -> None:
        try:
            path = self.error_log.flush()
        except OSError as e:
            # the report already carries every error; the file is a copy
            logger.warning("could not write error log: %s", e)
            return
        if path is not None:
            logger.info("error log written: %s", path)

    def _split(self, rows: Sequence[Sequence[object]], start: datetime) -> SheetData | BatchReport:
        try:
            return split_rows(rows)
        except (SchemaMismatchError, EmptyInputError) as e:
            return self._fail(e.error_type, str(e), start)

    async def _dispatch(self, sheet: SheetData, rows: Sequence[RowData], start: datetime) -> BatchReport:
        collector = OutcomeCollector()
        pool: WorkerPool[RowOutcome] = WorkerPool(self.concurrency)
        self.last_pool = pool
        with RowProgressTracker(len(rows)) as progress:
            for row in rows:
                pool.add(lambda row=row: self._run_one(row, sheet.header, collector, progress))
            await pool.join()

        outcomes = collector.outcomes()
        for o in outcomes:
            if not o.ok:
                self.error_log.append(
                    ErrorRecord.create(self.sheet_label, o.row, o.error_type or UNEXPECTED_ERROR, o.reason)
                )
        self._flush_error_log()
        self.status = BatchStatus.COMPLETED
        return BatchReport(
            status=BatchStatus.COMPLETED,
            outcomes=outcomes,
            start_time=start,
            end_time=datetime.now(UTC),
        )

    async def run(self, rows: Sequence[Sequence[object]]) -> BatchReport:
        """Process every data row of ``rows`` (header first).

        Returns:
            FAILED report with a single error when a pre-check fails, otherwise
            a COMPLETED report with one outcome per data row
        """
        self.status = BatchStatus.RUNNING
        start = datetime.now(UTC)
        sheet = self._split(rows, start)
        if isinstance(sheet, BatchReport):
            return sheet
        logger.info(
            "dispatching %d rows to %s period=%s concurrency=%d",
            len(sheet.rows),
            self.recipient,
            self.period,
            self.concurrency,
        )
        return await self._dispatch(sheet, sheet.rows, start)

    async def run_row(self, rows: Sequence[Sequence[object]], row_number: int) -> BatchReport:
        """Process a single data row identified by its display row number."""
        self.status = BatchStatus.RUNNING
        start = datetime.now(UTC)
        sheet = self._split(rows, start)
        if isinstance(sheet, BatchReport):
            return sheet
        selected = [r for r in sheet.rows if r.row_number == row_number]
        if not selected:
            return self._fail(INVALID_ROW_ERROR, f"invalid row {row_number}", start)
        return await self._dispatch(sheet, selected, start)
