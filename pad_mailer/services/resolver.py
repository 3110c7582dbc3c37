from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum
from pathlib import PurePosixPath

from ..gateways.base import FileStoreGateway
from ..models.attachment import Attachment
from ..models.row_data import RowData
from ..validation.references import extract_identifier

"""Attachment resolver.

For each required column of a row, extracts the Drive file id from the cell
and downloads metadata (for the extension) and content concurrently. A failed
download is logged and the column is left out; whether a partial set is
acceptable is decided by the AttachmentPolicy.
"""

__all__ = [
    "AttachmentPolicy",
    "ResolutionError",
    "AttachmentResolver",
]

logger = logging.getLogger(__name__)


class ResolutionError(Exception):
    """Raised when a row cannot produce an acceptable attachment set."""

    def __init__(self, message: str, missing: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.missing = tuple(missing)


class AttachmentPolicy(Enum):
    """What to do when some required attachments did not resolve.

    - BEST_EFFORT: send with whatever resolved; fail only if nothing did
    - ALL_REQUIRED: fail unless every required column resolved
    """
    BEST_EFFORT = "best_effort"
    ALL_REQUIRED = "all_required"


class AttachmentResolver:
    def __init__(
        self,
        files: FileStoreGateway,
        policy: AttachmentPolicy = AttachmentPolicy.BEST_EFFORT,
    ) -> None:
        self.files = files
        self.policy = policy

    async def _fetch(self, column: str, file_id: str) -> Attachment:
        meta, content = await asyncio.gather(
            self.files.get_metadata(file_id),
            self.files.get_content(file_id),
        )
        ext = PurePosixPath(meta.name).suffix
        return Attachment(filename=f"{column}{ext}", content=content, file_id=file_id)

    async def resolve_with_missing(
        self,
        row: RowData,
        header: Sequence[str],
        required: Sequence[str],
    ) -> tuple[list[Attachment], list[str]]:
        """Resolve attachments and also report the required columns that did not resolve.

        Returns:
            (attachments in ``required`` order, missing column names)

        Raises:
            ResolutionError: per the configured policy
        """
        targets: list[tuple[str, str]] = []
        missing: list[str] = []
        for col in required:
            file_id = extract_identifier(row.value(header, col))
            if file_id is None:
                # validation guarantees a link here unless it was bypassed
                missing.append(col)
                continue
            targets.append((col, file_id))

        results = await asyncio.gather(
            *(self._fetch(col, file_id) for col, file_id in targets),
            return_exceptions=True,
        )

        attachments: list[Attachment] = []
        for (col, file_id), result in zip(targets, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(
                    "row=%d column=%s file_id=%s download failed: %s",
                    row.row_number,
                    col,
                    file_id,
                    result,
                )
                missing.append(col)
                continue
            attachments.append(result)

        # keep the missing list in table order too
        missing.sort(key=list(required).index)

        if required and not attachments:
            raise ResolutionError(f"Row {row.row_number}: no valid attachment", missing)
        if missing and self.policy is AttachmentPolicy.ALL_REQUIRED:
            raise ResolutionError(
                f"Row {row.row_number}: required attachments unavailable: {', '.join(missing)}",
                missing,
            )
        return attachments, missing

    async def resolve(
        self,
        row: RowData,
        header: Sequence[str],
        required: Sequence[str],
    ) -> list[Attachment]:
        attachments, _ = await self.resolve_with_missing(row, header, required)
        return attachments
