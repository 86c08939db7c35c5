"""Filesystem-safe names for uploaded evidence files.

- sanitize_for_filesystem: strip path-illegal characters, keep the rest verbatim
- slugify_worker_name: ASCII directory name for a worker
- storage_file_name / unique_file_name: on-disk name of an upload
"""

import os
import re
import unicodedata
from typing import Callable

ILLEGAL_CHARS = "\\/:*?\"<>|'"

_ILLEGAL_RE = re.compile("[" + re.escape(ILLEGAL_CHARS) + "]")
_ONLY_DOTS_RE = re.compile(r"\.+")

UNKNOWN_WORKER = "unknown"


def sanitize_for_filesystem(name):
    """Remove characters that are illegal in file paths.

    Everything else (accents, spaces, parentheses, dots) is kept in place,
    including leading and trailing whitespace. A result made only of dots
    becomes "" so it can never resolve to "." or "..".
    """
    if not name:
        return name

    cleaned = _ILLEGAL_RE.sub("", name)
    if _ONLY_DOTS_RE.fullmatch(cleaned):
        return ""
    return cleaned


def slugify_worker_name(name: str | None) -> str:
    """Lowercase ASCII slug for a worker's upload directory.

    "José Núñez" -> "jose_nunez"
    """
    value = unicodedata.normalize("NFD", name or "")
    value = "".join(ch for ch in value if unicodedata.category(ch) != "Mn")
    value = re.sub(r"[^a-zA-Z0-9_\-]", "_", value)
    value = re.sub(r"_+", "_", value)
    value = value.strip("_").lower()
    return value or UNKNOWN_WORKER


def storage_file_name(name: str) -> str:
    """Name used on disk: anything outside [A-Za-z0-9._-] becomes '_'."""
    return re.sub(r"[^a-zA-Z0-9._\-]", "_", name)


def unique_file_name(name: str, exists: Callable[[str], bool], max_retries: int = 100) -> str:
    """Append -1, -2, ... before the extension until exists() is False."""
    base, ext = os.path.splitext(name)
    candidate = name
    counter = 1
    while exists(candidate):
        if counter > max_retries:
            raise FileExistsError(f"No free name for {name} after {max_retries} attempts")
        candidate = f"{base}-{counter}{ext}"
        counter += 1
    return candidate
