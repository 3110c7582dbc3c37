from __future__ import annotations

import re

"""External file reference predicate + extractor.

A cell points at a stored file only when it has the Drive URL shape AND
carries an extractable file identifier (a run of at least 25 word or hyphen
characters). Both checks are plain string work so they run without network.
"""

__all__ = [
    "is_recognized_reference",
    "extract_identifier",
]

DRIVE_URL_RE = re.compile(r"^https://drive\.google\.com/(file/d/|open\?id=)")
FILE_ID_RE = re.compile(r"[-\w]{25,}")


def extract_identifier(value: str | None) -> str | None:
    """Return the first file-id-shaped token in ``value`` or None."""
    if not value:
        return None
    match = FILE_ID_RE.search(value)
    return match.group(0) if match else None


def is_recognized_reference(value: str | None) -> bool:
    """True if ``value`` is a Drive file URL with an extractable identifier."""
    if not value:
        return False
    return bool(DRIVE_URL_RE.match(value)) and extract_identifier(value) is not None
