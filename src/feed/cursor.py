"""
Opaque pagination cursors.

A cursor records how far each source's ranked list (and the highlight
stream) has been consumed, plus how many feed positions were emitted. The
token handed to callers is URL-safe base64 of a versioned JSON payload
followed by a truncated SHA-256 checksum, so tokens that were not produced
by ``encode_cursor`` are rejected instead of silently restarting the feed.
"""

import base64
import binascii
import hashlib
import json

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.feed.errors import MalformedCursorError

CURSOR_VERSION = 1
_CHECKSUM_BYTES = 6


class Cursor(BaseModel):
    """Resume position within one pagination lineage."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source_offsets: dict[str, int] = Field(default_factory=dict)
    highlight_offset: int = Field(default=0, ge=0)
    emitted_count: int = Field(default=0, ge=0)

    def offset_for(self, source: str) -> int:
        return self.source_offsets.get(source, 0)


def _checksum(payload: bytes) -> bytes:
    return hashlib.sha256(payload).digest()[:_CHECKSUM_BYTES]


def encode_cursor(cursor: Cursor) -> str:
    """Serialize a cursor into an opaque URL-safe token."""
    payload = json.dumps(
        {
            "v": CURSOR_VERSION,
            "s": dict(sorted(cursor.source_offsets.items())),
            "h": cursor.highlight_offset,
            "e": cursor.emitted_count,
        },
        separators=(",", ":"),
    ).encode("utf-8")
    token = base64.urlsafe_b64encode(payload + _checksum(payload))
    return token.rstrip(b"=").decode("ascii")


def decode_cursor(token: str) -> Cursor:
    """
    Parse a token produced by ``encode_cursor``.

    Raises:
        MalformedCursorError: For empty, truncated, tampered or foreign tokens.
    """
    if not token or not isinstance(token, str):
        raise MalformedCursorError("Cursor is empty")

    try:
        padded = token + "=" * (-len(token) % 4)
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError, ValueError) as e:
        raise MalformedCursorError("Cursor is not valid base64") from e

    if len(raw) <= _CHECKSUM_BYTES:
        raise MalformedCursorError("Cursor is truncated")

    payload, checksum = raw[:-_CHECKSUM_BYTES], raw[-_CHECKSUM_BYTES:]
    if _checksum(payload) != checksum:
        raise MalformedCursorError("Cursor checksum mismatch")

    try:
        data = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedCursorError("Cursor payload is not JSON") from e

    if not isinstance(data, dict) or data.get("v") != CURSOR_VERSION:
        raise MalformedCursorError("Unsupported cursor version")

    offsets = data.get("s")
    if not isinstance(offsets, dict) or any(
        not isinstance(v, int) or isinstance(v, bool) or v < 0 for v in offsets.values()
    ):
        raise MalformedCursorError("Cursor source offsets are invalid")

    try:
        return Cursor(
            source_offsets=offsets,
            highlight_offset=data.get("h"),
            emitted_count=data.get("e"),
        )
    except ValidationError as e:
        raise MalformedCursorError("Cursor fields are invalid") from e
