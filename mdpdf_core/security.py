"""Filename checks for the download filename supplied by the client.

The filename ends up inside a ``Content-Disposition`` header, so anything that
could break out of the quoted value or smuggle a path is rejected up front.
"""
from __future__ import annotations

import re
import unicodedata
from pathlib import PurePosixPath
from urllib.parse import quote


_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")
_NON_ASCII_FALLBACK_RE = re.compile(r"[^A-Za-z0-9._\- ()\[\]]+")


def filename_problem(name: object) -> str | None:
    """Return a human readable reason why ``name`` is unsafe, or None if it is fine."""
    if not isinstance(name, str):
        return "Filename must be a string"
    stripped = name.strip()
    if not stripped:
        return "Filename is required"
    if "/" in stripped or "\\" in stripped:
        return "Filename must not contain path separators"
    if stripped in {".", ".."}:
        return "Filename must not be a relative path"
    if _CONTROL_CHARS_RE.search(stripped):
        return "Filename must not contain control characters"
    if '"' in stripped:
        return "Filename must not contain double quotes"
    if stripped != PurePosixPath(stripped).name:
        return "Filename must be a plain file name"
    return None


def is_safe_filename(name: object) -> bool:
    """Allow only simple filenames (no directories, no header-breaking characters)."""
    return filename_problem(name) is None


def ascii_fallback(name: str) -> str:
    """Best-effort ASCII rendition of ``name`` for the legacy ``filename`` parameter."""
    path = PurePosixPath(name)
    decomposed = unicodedata.normalize("NFKD", path.stem)
    ascii_only = decomposed.encode("ascii", "ignore").decode("ascii")
    stem = _NON_ASCII_FALLBACK_RE.sub("_", ascii_only).strip(" _.")
    suffix = path.suffix if not _NON_ASCII_FALLBACK_RE.search(path.suffix) else ""
    return f"{stem or 'document'}{suffix}"


def content_disposition(filename: str) -> str:
    """Build an ``attachment`` Content-Disposition value for a validated filename.

    ASCII names are emitted as-is; other names get an RFC 5987 ``filename*``
    parameter next to an ASCII fallback so the header stays latin-1 encodable.
    """
    if filename.isascii():
        return f'attachment; filename="{filename}"'
    encoded = quote(filename, safe="")
    return f"attachment; filename=\"{ascii_fallback(filename)}\"; filename*=UTF-8''{encoded}"
