from __future__ import annotations

from ..models.batch_report import BatchReport

"""SUMMARY line rendering for a dispatch batch."""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for tiny durations
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(report: BatchReport) -> str:
    """Render the SUMMARY line for ``report``.

    Format:
    SUMMARY status={status} rows={total} success={ok} validation_failed={v}
    send_failed={f} elapsed_sec={elapsed}

    Examples:
        >>> from pad_mailer.models.batch_report import BatchReport, BatchStatus
        >>> render_summary_line(BatchReport(status=BatchStatus.FAILED, errors=("spreadsheet is empty",)))
        'SUMMARY status=failed rows=0 success=0 validation_failed=0 send_failed=0 elapsed_sec=0'
    """
    return (
        f"SUMMARY status={report.status.value} "
        f"rows={report.total_rows} "
        f"success={report.success_count} "
        f"validation_failed={report.validation_failed_count} "
        f"send_failed={report.send_failed_count} "
        f"elapsed_sec={_format_seconds(report.elapsed_seconds)}"
    )
