"""Gzip helpers for message payloads."""

from __future__ import annotations

import gzip
import zlib


def zip_bytes(data: bytes) -> bytes:
    """Compress ``data`` into a gzip stream."""
    return gzip.compress(bytes(data))


def unzip_bytes(data: bytes) -> bytes:
    """Decompress a gzip stream; raise ValueError if it is not valid gzip."""
    try:
        return gzip.decompress(bytes(data))
    except (OSError, EOFError, zlib.error) as exc:
        raise ValueError(f"invalid gzip data: {exc}") from exc