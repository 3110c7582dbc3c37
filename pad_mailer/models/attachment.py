from __future__ import annotations

from dataclasses import dataclass, field

"""Attachment model built per send attempt and discarded afterwards."""

__all__ = [
    "Attachment",
]


@dataclass(frozen=True)
class Attachment:
    filename: str  # <column name><extension of the stored file>
    content: bytes = field(repr=False)
    file_id: str = ""  # source identifier, for logs only

    @property
    def size(self) -> int:
        return len(self.content)
