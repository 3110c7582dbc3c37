from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import httplib2
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from .base import AuthError, FileMetadata, GatewayError, NotFoundError, SendError

"""Google Workspace collaborators: Sheets (rows), Drive (attachments) and
Gmail (delivery), sharing one credential provider.

The discovery clients are blocking, so every call runs in a worker thread.
httplib2 connections are not thread safe; each request is executed on a fresh
AuthorizedHttp instead of the client's shared one.
"""

__all__ = [
    "SCOPES",
    "GoogleCredentialProvider",
    "GoogleSheetsGateway",
    "GoogleDriveGateway",
    "GmailGateway",
    "map_http_error",
]

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets.readonly",
    "https://www.googleapis.com/auth/drive.readonly",
    "https://www.googleapis.com/auth/gmail.send",
]

SPREADSHEET_MIME_TYPE = "application/vnd.google-apps.spreadsheet"
TRANSIENT_STATUSES = {429, 500, 502, 503, 504}


def _status(error: HttpError) -> int:
    return int(getattr(error.resp, "status", 0) or 0)


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, HttpError) and _status(exc) in TRANSIENT_STATUSES


def map_http_error(error: HttpError, what: str) -> GatewayError:
    """Translate an HttpError into the gateway error taxonomy."""
    status = _status(error)
    reason = getattr(error, "reason", None) or str(error)
    if status == 404:
        return NotFoundError(f"{what} not found: {reason}")
    if status in (401, 403):
        return AuthError(f"{what} access denied ({status}): {reason}")
    return GatewayError(f"{what} request failed ({status}): {reason}")


class GoogleCredentialProvider:
    """OAuth user credentials loaded from an authorized-user JSON file.

    Expired access tokens are refreshed with the stored refresh token; callers
    always receive credentials that are valid at the time of the call.
    """

    def __init__(self, authorized_user_file: str | Path, scopes: Sequence[str] = SCOPES) -> None:
        self.authorized_user_file = Path(authorized_user_file)
        self.scopes = list(scopes)
        self._creds: Credentials | None = None
        self._lock = threading.Lock()

    def credentials(self) -> Credentials:
        with self._lock:
            if self._creds is None:
                if not self.authorized_user_file.exists():
                    raise AuthError(f"credentials file not found: {self.authorized_user_file}")
                self._creds = Credentials.from_authorized_user_file(
                    str(self.authorized_user_file), self.scopes
                )
            if not self._creds.valid:
                if not self._creds.refresh_token:
                    raise AuthError("access token expired and no refresh token available")
                try:
                    self._creds.refresh(Request())
                except RefreshError as e:
                    raise AuthError(f"token refresh failed: {e}") from e
                logger.debug("access token refreshed")
            return self._creds


class _GoogleService:
    api = ""
    version = ""

    def __init__(self, provider: GoogleCredentialProvider, service: Any = None) -> None:
        self.provider = provider
        self._service = service
        self._lock = threading.Lock()

    def _get_service(self) -> Any:
        with self._lock:
            if self._service is None:
                self._service = build(
                    self.api,
                    self.version,
                    credentials=self.provider.credentials(),
                    cache_discovery=False,
                )
            return self._service

    def _http(self) -> AuthorizedHttp:
        return AuthorizedHttp(self.provider.credentials(), http=httplib2.Http())

    def _execute_once(self, make_request: Callable[[Any], Any]) -> Any:
        return make_request(self._get_service()).execute(http=self._http())

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _execute(self, make_request: Callable[[Any], Any]) -> Any:
        return self._execute_once(make_request)

    async def _call(self, make_request: Callable[[Any], Any], what: str) -> Any:
        try:
            return await asyncio.to_thread(self._execute, make_request)
        except HttpError as e:
            raise map_http_error(e, what) from e
        except (httplib2.HttpLib2Error, OSError) as e:
            raise GatewayError(f"{what}: transport error: {e}") from e


class GoogleSheetsGateway(_GoogleService):
    api = "sheets"
    version = "v4"

    async def get_rows(self, sheet_id: str, sheet_range: str) -> list[list[str]]:
        result = await self._call(
            lambda s: s.spreadsheets().values().get(spreadsheetId=sheet_id, range=sheet_range),
            f"spreadsheet {sheet_id} range {sheet_range!r}",
        )
        rows = result.get("values", [])
        logger.debug("fetched %d rows from %s!%s", len(rows), sheet_id, sheet_range)
        return rows

    async def list_sheets(self, sheet_id: str) -> list[dict[str, Any]]:
        """Tab properties (sheetId, title) of a spreadsheet."""
        result = await self._call(
            lambda s: s.spreadsheets().get(
                spreadsheetId=sheet_id, fields="sheets(properties(sheetId,title))"
            ),
            f"spreadsheet {sheet_id}",
        )
        return [sheet.get("properties", {}) for sheet in result.get("sheets", [])]


class GoogleDriveGateway(_GoogleService):
    api = "drive"
    version = "v3"

    async def get_metadata(self, file_id: str) -> FileMetadata:
        result = await self._call(
            lambda s: s.files().get(fileId=file_id, fields="name", supportsAllDrives=True),
            f"file {file_id}",
        )
        return FileMetadata(name=result.get("name", ""))

    async def get_content(self, file_id: str) -> bytes:
        return await self._call(
            lambda s: s.files().get_media(fileId=file_id, supportsAllDrives=True),
            f"file {file_id}",
        )

    async def list_spreadsheets(self) -> list[dict[str, str]]:
        """All spreadsheets visible to the user, shared drives included."""
        files: list[dict[str, str]] = []
        page_token: str | None = None
        while True:
            result = await self._call(
                lambda s, token=page_token: s.files().list(
                    q=f"mimeType='{SPREADSHEET_MIME_TYPE}'",
                    fields="nextPageToken, files(id,name)",
                    supportsAllDrives=True,
                    includeItemsFromAllDrives=True,
                    pageToken=token,
                ),
                "spreadsheet listing",
            )
            files.extend(result.get("files", []))
            page_token = result.get("nextPageToken")
            if not page_token:
                return files


class GmailGateway(_GoogleService):
    api = "gmail"
    version = "v1"

    async def send(self, to_address: str, message: Any) -> None:
        # no transient retry here: a resend after a 5xx may deliver twice
        try:
            result = await asyncio.to_thread(
                self._execute_once,
                lambda s: s.users().messages().send(userId="me", body={"raw": message.to_raw()}),
            )
        except HttpError as e:
            raise SendError(f"gmail rejected message to {to_address} ({_status(e)}): {e}") from e
        except (AuthError, httplib2.HttpLib2Error, OSError) as e:
            raise SendError(f"gmail send to {to_address} failed: {e}") from e
        logger.debug("gmail accepted message id=%s", result.get("id") if isinstance(result, dict) else None)
