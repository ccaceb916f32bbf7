"""Serving the shared file: content type, headers and the streamed body."""

import logging
import mimetypes
import os
import unicodedata
from typing import Callable
from urllib.parse import quote

from flask import Response

from .config import CHUNK_SIZE
from .errors import TransferIOError
from .progress import ProgressObservation, ProgressTracker
from .session import Grant

logger = logging.getLogger(__name__)

SNIFF_LEN = 512
DEFAULT_TYPE = "application/octet-stream"

FALLBACK_TYPES = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".mp4": "video/mp4",
    ".zip": "application/zip",
    ".txt": "text/plain; charset=utf-8",
}

# (offset, signature, type)
SIGNATURES = [
    (0, b"%PDF-", "application/pdf"),
    (0, b"\x89PNG\r\n\x1a\n", "image/png"),
    (0, b"\xff\xd8\xff", "image/jpeg"),
    (0, b"GIF87a", "image/gif"),
    (0, b"GIF89a", "image/gif"),
    (0, b"BM", "image/bmp"),
    (0, b"PK\x03\x04", "application/zip"),
    (0, b"\x1f\x8b\x08", "application/x-gzip"),
    (0, b"Rar!\x1a\x07", "application/x-rar-compressed"),
    (0, b"%!PS-Adobe-", "application/postscript"),
    (0, b"OggS\x00", "application/ogg"),
    (0, b"ID3", "audio/mpeg"),
    (0, b"fLaC", "audio/flac"),
    (0, b"\x1aE\xdf\xa3", "video/webm"),
    (0, b"\x00asm", "application/wasm"),
    (4, b"ftyp", "video/mp4"),
]

TEXT_BOMS = [
    (b"\xfe\xff", "text/plain; charset=utf-16be"),
    (b"\xff\xfe", "text/plain; charset=utf-16le"),
    (b"\xef\xbb\xbf", "text/plain; charset=utf-8"),
]

MARKUP_PREFIXES = [
    (b"<!doctype html", "text/html; charset=utf-8"),
    (b"<html", "text/html; charset=utf-8"),
    (b"<?xml", "text/xml; charset=utf-8"),
]

# bytes that never show up in plain text
_BINARY_BYTES = set(range(0x00, 0x09)) | {0x0B} | set(range(0x0E, 0x1B)) | set(range(0x1C, 0x20))


def sniff_content_type(head: bytes) -> str | None:
    if not head:
        return "text/plain; charset=utf-8"
    for offset, sig, ctype in SIGNATURES:
        if head[offset:offset + len(sig)] == sig:
            return ctype
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    if head[:4] == b"RIFF" and head[8:12] == b"WAVE":
        return "audio/wav"
    for bom, ctype in TEXT_BOMS:
        if head.startswith(bom):
            return ctype
    stripped = head.lstrip(b"\t\n\x0c\r ").lower()
    for prefix, ctype in MARKUP_PREFIXES:
        if stripped.startswith(prefix):
            return ctype
    if not any(b in _BINARY_BYTES for b in head):
        return "text/plain; charset=utf-8"
    return None


def resolve_content_type(path: str, name: str) -> str:
    """Extension table, then the fallback table, then sniffing, then binary."""
    ext = os.path.splitext(name)[1].lower()
    ctype, _ = mimetypes.guess_type(name, strict=False)
    if ctype:
        return ctype
    if ext in FALLBACK_TYPES:
        return FALLBACK_TYPES[ext]
    try:
        with open(path, "rb") as f:
            head = f.read(SNIFF_LEN)
    except OSError as e:
        logger.debug("Cannot sniff %s: %s", path, e)
    else:
        ctype = sniff_content_type(head)
        if ctype:
            return ctype
    return DEFAULT_TYPE


def content_disposition(name: str) -> str:
    name = name.replace("\r", "").replace("\n", "")
    try:
        name.encode("ascii")
        simple = name
    except UnicodeEncodeError:
        simple = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    simple = simple.replace("\\", "\\\\").replace('"', '\\"') or "download"
    quoted = quote(name, safe="!#$&+^`|")
    return f"attachment; filename=\"{simple}\"; filename*=UTF-8''{quoted}"


def download_headers(name: str, content_type: str, size: int) -> dict[str, str]:
    return {
        "Content-Disposition": content_disposition(name),
        "Content-Type": content_type,
        "Content-Length": str(size),
        "X-Content-Type-Options": "nosniff",
        "Cache-Control": "no-cache, no-store, must-revalidate",
        "Pragma": "no-cache",
        "Expires": "0",
    }


def reached_limit(grant: Grant) -> bool:
    limit = grant.session.limit
    return limit > 0 and grant.sequence == limit


def build_download_response(
    grant: Grant,
    on_progress: Callable[[ProgressObservation], None] | None = None,
    on_close: Callable[[Grant, ProgressTracker], None] | None = None,
    chunk_size: int = CHUNK_SIZE,
) -> Response:
    """Stream the granted session's file.

    The grant is released when the response is closed, whether the body was
    sent completely, cut short by the client, or never iterated.
    """
    session = grant.session
    try:
        fh = grant.open()
    except OSError as e:
        grant.release()
        raise TransferIOError(f"cannot open {session.name}: {e.strerror or e}") from e

    tracker = ProgressTracker(session.size, on_progress)
    content_type = resolve_content_type(session.path, session.name)

    def body():
        yield from tracker.wrap(iter(lambda: fh.read(chunk_size), b""))

    def close():
        fh.close()
        grant.release()
        if tracker.transferred < session.size:
            logger.warning(
                "Transfer #%d of %s ended early (%d of %d bytes)",
                grant.sequence,
                session.name,
                tracker.transferred,
                session.size,
            )
        else:
            logger.info("Transfer #%d of %s complete", grant.sequence, session.name)
        if on_close is not None:
            on_close(grant, tracker)

    response = Response(
        body(),
        headers=download_headers(session.name, content_type, session.size),
        direct_passthrough=True,
    )
    response.call_on_close(close)
    return response
