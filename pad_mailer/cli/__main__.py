from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from pad_mailer.config.loader import DEFAULT_CONFIG_PATH, ConfigError, MailerConfig, load_config
from pad_mailer.gateways.base import GatewayError
from pad_mailer.gateways.google import (
    SCOPES,
    GmailGateway,
    GoogleCredentialProvider,
    GoogleDriveGateway,
    GoogleSheetsGateway,
)
from pad_mailer.gateways.outbox import OutboxMailGateway
from pad_mailer.gateways.workbook import WorkbookGateway
from pad_mailer.logging.error_log import ErrorLogBuffer
from pad_mailer.logging.init import log_summary, setup_logging
from pad_mailer.models.batch_report import BatchReport, BatchStatus
from pad_mailer.services.dispatcher import BatchDispatcher, preview
from pad_mailer.services.summary import render_summary_line
from pad_mailer.sheets.reader import EmptyInputError, SchemaMismatchError

"""CLI entrypoint.

Flow:
- Load .env, then config/mailer.yml (or --config)
- Build the collaborators (Google APIs, local workbook, dry-run outbox)
- Run one of: full batch, single row (--row), preview (--preview),
  listings (--list-spreadsheets / --list-sheets)
- Print the SUMMARY line and map the result to an exit code
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


@dataclass
class Collaborators:
    sheets: Any  # SpreadsheetGateway (+ list_sheets)
    files: Any  # FileStoreGateway
    mail: Any  # MailGateway
    drive: GoogleDriveGateway | None = None  # spreadsheet listing


def _build_collaborators(cfg: MailerConfig) -> Collaborators:
    provider = GoogleCredentialProvider(
        cfg.credentials.authorized_user_file,
        cfg.credentials.scopes or SCOPES,
    )
    drive = GoogleDriveGateway(provider)
    mail = OutboxMailGateway(cfg.outbox_directory) if cfg.dry_run else GmailGateway(provider)
    if cfg.source == "workbook":
        # attachments still come from Drive; spreadsheet listing does not apply
        return Collaborators(sheets=WorkbookGateway(), files=drive, mail=mail)
    return Collaborators(sheets=GoogleSheetsGateway(provider), files=drive, mail=mail, drive=drive)


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; values override the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="pad-mailer",
        description="Validate PAD spreadsheet rows and email their Drive attachments",
    )
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--dry-run", action="store_true", help="Write .eml files instead of sending")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--preview", action="store_true", help="Validate rows only, send nothing")
    mode.add_argument("--row", type=int, metavar="N", help="Send a single sheet row (display number)")
    mode.add_argument("--list-spreadsheets", action="store_true", help="List visible spreadsheets")
    mode.add_argument("--list-sheets", action="store_true", help="List tabs of the configured spreadsheet")
    return p.parse_args(argv)


def _exit_code(report: BatchReport) -> int:
    if report.status is BatchStatus.FAILED:
        return EXIT_FATAL
    if report.all_succeeded:
        return EXIT_SUCCESS_ALL
    return EXIT_PARTIAL_FAILURE


async def _preview(cfg: MailerConfig, collab: Collaborators, logger) -> int:
    rows = await collab.sheets.get_rows(cfg.sheet_id, cfg.sheet_range)
    try:
        report = preview(rows)
    except (SchemaMismatchError, EmptyInputError) as e:
        logger.error(f"preview: {e}")
        return EXIT_FATAL
    for err in report.errors:
        logger.warning(err.message)
    log_summary(f"preview rows={len(report.rows)} errors={len(report.errors)}")
    return EXIT_SUCCESS_ALL if report.ok else EXIT_PARTIAL_FAILURE


async def _list_spreadsheets(collab: Collaborators, logger) -> int:
    if collab.drive is None:
        logger.error("spreadsheet listing needs source: google")
        return EXIT_FATAL
    for item in await collab.drive.list_spreadsheets():
        print(f"{item.get('id')}\t{item.get('name')}")
    return EXIT_SUCCESS_ALL


async def _list_sheets(cfg: MailerConfig, collab: Collaborators) -> int:
    for props in await collab.sheets.list_sheets(cfg.sheet_id):
        print(f"{props.get('sheetId')}\t{props.get('title')}")
    return EXIT_SUCCESS_ALL


async def _dispatch(cfg: MailerConfig, collab: Collaborators, row: int | None) -> int:
    rows = await collab.sheets.get_rows(cfg.sheet_id, cfg.sheet_range)
    dispatcher = BatchDispatcher(
        collab.files,
        collab.mail,
        cfg.recipient,
        cfg.period,
        concurrency=cfg.concurrency,
        policy=cfg.attachment_policy,
        sender=cfg.sender,
        sheet_label=f"{cfg.sheet_id}!{cfg.sheet_range}",
        error_log=ErrorLogBuffer(Path(cfg.logs_directory)),
    )
    if row is None:
        report = await dispatcher.run(rows)
    else:
        report = await dispatcher.run_row(rows, row)
    # log_summary adds the "SUMMARY " prefix itself
    log_summary(render_summary_line(report)[len("SUMMARY "):])
    return _exit_code(report)


async def _run(args: argparse.Namespace, cfg: MailerConfig, logger) -> int:
    collab = _build_collaborators(cfg)
    if args.list_spreadsheets:
        return await _list_spreadsheets(collab, logger)
    if args.list_sheets:
        return await _list_sheets(cfg, collab)
    if args.preview:
        return await _preview(cfg, collab, logger)
    return await _dispatch(cfg, collab, args.row)


def main(argv: list[str] | None = None) -> int:
    # only read sys.argv when no list was given ([] from tests must stay empty)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    if args.dry_run:
        cfg = replace(cfg, dry_run=True)

    logger.info(
        f"source={cfg.source} sheet={cfg.sheet_id} range={cfg.sheet_range} "
        f"period={cfg.period} dry_run={cfg.dry_run}"
    )
    try:
        return asyncio.run(_run(args, cfg, logger))
    except GatewayError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
