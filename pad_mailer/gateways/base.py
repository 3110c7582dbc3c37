from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..services.composer import ComposedMessage

"""Collaborator contracts consumed by the dispatch core.

The core never talks to a concrete API; it awaits these protocols. Google
backed implementations live in ``gateways.google``, the local workbook source
in ``gateways.workbook`` and the dry-run mail sink in ``gateways.outbox``.
"""

__all__ = [
    "GatewayError",
    "NotFoundError",
    "AuthError",
    "SendError",
    "FileMetadata",
    "SpreadsheetGateway",
    "FileStoreGateway",
    "MailGateway",
    "CredentialProvider",
]


class GatewayError(Exception):
    """Base class for collaborator failures."""


class NotFoundError(GatewayError):
    """Spreadsheet, range or file does not exist (or is not visible)."""


class AuthError(GatewayError):
    """Credentials missing, expired beyond refresh, or lacking scope."""


class SendError(GatewayError):
    """Mail transport rejected or failed to deliver a message."""


@dataclass(frozen=True)
class FileMetadata:
    name: str  # display name, used to recover the extension


class SpreadsheetGateway(Protocol):
    async def get_rows(self, sheet_id: str, sheet_range: str) -> list[list[str]]:
        """All rows of the range; first row is the header."""
        ...


class FileStoreGateway(Protocol):
    async def get_metadata(self, file_id: str) -> FileMetadata: ...

    async def get_content(self, file_id: str) -> bytes: ...


class MailGateway(Protocol):
    async def send(self, to_address: str, message: ComposedMessage) -> None:
        """Deliver ``message``; raise SendError on failure."""
        ...


class CredentialProvider(Protocol):
    def credentials(self) -> Any:
        """Credentials valid right now (refreshed by the provider if needed)."""
        ...
