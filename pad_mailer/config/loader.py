from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.delivery import Period
from ..services.resolver import AttachmentPolicy

"""Config loader.

Responsibilities:
- Load YAML config/mailer.yml
- Validate it against config_schema.json (shipped next to this module)
- Apply defaults and environment overrides
- Validate recipient and period before anything is fetched

Environment variables (typically from .env) win over the YAML values:
GOOGLE_AUTHORIZED_USER_FILE, PAD_MAILER_RECIPIENT.
"""

__all__ = [
    "ConfigError",
    "CredentialsConfig",
    "MailerConfig",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/mailer.yml")

ENV_AUTHORIZED_USER_FILE = "GOOGLE_AUTHORIZED_USER_FILE"
ENV_RECIPIENT = "PAD_MAILER_RECIPIENT"

_EMAIL_PATTERN = "^[^@\\s]+@[^@\\s]+\\.[^@\\s]+$"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class CredentialsConfig:
    authorized_user_file: str = "token.json"
    scopes: tuple[str, ...] | None = None  # None -> gateway defaults


@dataclass(frozen=True)
class MailerConfig:
    spreadsheet_id: str  # Sheets id, or workbook path when source=workbook
    sheet_range: str
    recipient: str
    period: Period
    source: str = "google"
    workbook_path: str | None = None
    sender: str | None = None
    concurrency: int = 2
    attachment_policy: AttachmentPolicy = AttachmentPolicy.BEST_EFFORT
    dry_run: bool = False
    outbox_directory: str = "outbox"
    logs_directory: str = "logs"
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)

    @property
    def sheet_id(self) -> str:
        """Identifier handed to the spreadsheet gateway."""
        if self.source == "workbook" and self.workbook_path:
            return self.workbook_path
        return self.spreadsheet_id


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or data does not conform
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigError(f"config validation failed at {where}: {e.message}") from e


def _recipient(data: dict[str, Any]) -> str:
    value = os.getenv(ENV_RECIPIENT) or data.get("recipient")
    if not value:
        raise ConfigError(f"recipient not configured (set 'recipient' or {ENV_RECIPIENT})")
    # env values bypass the schema, so check the shape here as well
    try:
        jsonschema.validate(value, {"type": "string", "pattern": _EMAIL_PATTERN})
    except ValidationError as e:
        raise ConfigError(f"invalid recipient address: {value!r}") from e
    return value


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> MailerConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    period_raw = data["period"]
    try:
        period = Period.parse(period_raw["year"], period_raw["month"])
    except ValueError as e:
        raise ConfigError(f"period: {e}") from e

    creds_raw = data.get("credentials", {})
    scopes = creds_raw.get("scopes")
    credentials = CredentialsConfig(
        authorized_user_file=os.getenv(ENV_AUTHORIZED_USER_FILE)
        or creds_raw.get("authorized_user_file", "token.json"),
        scopes=tuple(scopes) if scopes else None,
    )

    return MailerConfig(
        spreadsheet_id=data["spreadsheet_id"],
        sheet_range=data["sheet_range"],
        recipient=_recipient(data),
        period=period,
        source=data.get("source", "google"),
        workbook_path=data.get("workbook_path"),
        sender=data.get("sender"),
        concurrency=data.get("concurrency", 2),
        attachment_policy=AttachmentPolicy(data.get("attachment_policy", "best_effort")),
        dry_run=data.get("dry_run", False),
        outbox_directory=data.get("outbox_directory", "outbox"),
        logs_directory=data.get("logs_directory", "logs"),
        credentials=credentials,
    )
