"""Conversions between bytes and text, and metadata copying."""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping


def slice_byte_to_string(b: bytes) -> str:
    """Decode bytes to text without losing any byte that is not valid UTF-8."""
    return bytes(b).decode("utf-8", "surrogateescape")


def string_to_slice_byte(s: str) -> bytes:
    """Encode text to bytes; the inverse of :func:`slice_byte_to_string`."""
    return s.encode("utf-8", "surrogateescape")


def copy_meta(
    src: Mapping[str, str] | None, dst: MutableMapping[str, str] | None
) -> None:
    """Copy every pair of ``src`` into ``dst``; a missing ``dst`` is ignored."""
    if dst is None or not src:
        return
    dst.update(src)