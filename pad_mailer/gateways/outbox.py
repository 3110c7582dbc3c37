from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import Any

from .base import SendError

"""Dry-run mail sink: writes each composed message as an .eml file instead
of sending it."""

__all__ = [
    "OutboxMailGateway",
]

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^\w.-]+")


class OutboxMailGateway:
    def __init__(self, directory: str | Path = "outbox") -> None:
        self.directory = Path(directory)
        self.sent: list[Path] = []
        self._seq = 0

    def _next_path(self, subject: str) -> Path:
        self._seq += 1
        stem = _UNSAFE.sub("_", subject).strip("_")[:80] or "message"
        return self.directory / f"{self._seq:04d}-{stem}.eml"

    def _write(self, path: Path, payload: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)

    async def send(self, to_address: str, message: Any) -> None:
        path = self._next_path(message.subject)
        try:
            await asyncio.to_thread(self._write, path, message.to_email_message().as_bytes())
        except OSError as e:
            raise SendError(f"could not write {path}: {e}") from e
        self.sent.append(path)
        logger.info("dry run: message to %s written to %s", to_address, path)
