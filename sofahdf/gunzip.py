"""Inflation of deflate-compressed chunks."""

from __future__ import annotations

import zlib

from .reader import InvalidFormatError


def gunzip(data: bytes, out_length: int) -> bytes:
    """Inflate a zlib stream, producing at most ``out_length`` bytes."""
    if not data or out_length <= 0:
        raise InvalidFormatError("nothing to inflate")
    try:
        return zlib.decompressobj().decompress(data, out_length)
    except zlib.error as exc:
        raise InvalidFormatError(f"inflate failed: {exc}") from exc