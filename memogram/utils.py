"""Small helpers: Memos resource names, content types, allow lists."""

import mimetypes
from typing import Optional

from .errors import InvalidResourceNameError

_OCTET_STREAM = "application/octet-stream"

# (offset, magic bytes, mime type), checked in order
_SIGNATURES = [
    (0, b"\xff\xd8\xff", "image/jpeg"),
    (0, b"\x89PNG\r\n\x1a\n", "image/png"),
    (0, b"GIF87a", "image/gif"),
    (0, b"GIF89a", "image/gif"),
    (0, b"%PDF-", "application/pdf"),
    (0, b"OggS", "audio/ogg"),
    (0, b"PK\x03\x04", "application/zip"),
    (4, b"ftyp", "video/mp4"),
]


def get_name_parent_tokens(name: str, *prefixes: str) -> list[str]:
    """Split a resource name into its ids.

    Example:
        get_name_parent_tokens("users/12", "users/") → ["12"]
    """
    parts = name.split("/")
    if len(parts) != 2 * len(prefixes):
        raise InvalidResourceNameError(f"invalid request {name!r}")

    tokens = []
    for i, prefix in enumerate(prefixes):
        if f"{parts[2 * i]}/" != prefix:
            raise InvalidResourceNameError(f"invalid prefix {prefix!r} in request {name!r}")
        if not parts[2 * i + 1]:
            raise InvalidResourceNameError(f"invalid request {name!r} with empty prefix {prefix!r}")
        tokens.append(parts[2 * i + 1])
    return tokens


def extract_memo_uid(name: str) -> str:
    """``memos/<uid>`` → ``<uid>``."""
    return get_name_parent_tokens(name, "memos/")[0]


def build_memo_url(base_url: str, memo_name: str) -> str:
    return f"{base_url.rstrip('/')}/m/{extract_memo_uid(memo_name)}"


def detect_content_type(
    data: bytes,
    filename: Optional[str] = None,
    hint: Optional[str] = None,
) -> str:
    """Best guess at a MIME type for downloaded file bytes.

    A specific ``hint`` (e.g. Telegram's ``mime_type``) wins. Otherwise the
    leading bytes are sniffed, then the filename extension is tried.
    """
    if hint and hint != _OCTET_STREAM:
        return hint

    head = bytes(data[:16])
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    for offset, magic, mime in _SIGNATURES:
        if head[offset:offset + len(magic)] == magic:
            return mime

    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed:
            return guessed
    return _OCTET_STREAM


def parse_allowed_usernames(raw: Optional[str]) -> set[str]:
    """Parse a comma separated allow list into lowercased usernames."""
    allowed = set()
    for entry in (raw or "").split(","):
        entry = entry.strip().lower()
        if entry:
            allowed.add(entry)
    return allowed


def is_user_allowed(username: Optional[str], allowed: set[str]) -> bool:
    """An empty allow list lets everyone in; otherwise a username is required."""
    if not allowed:
        return True
    if not username:
        return False
    return username.strip().lower() in allowed
