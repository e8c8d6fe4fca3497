"""Chrome Native Messaging framing (4-byte little-endian length prefix + UTF-8 body)."""

from __future__ import annotations

import struct
from typing import BinaryIO

_HEADER = struct.Struct("<I")


class FrameError(ValueError):
    """The frame arrived complete but its payload is not valid UTF-8."""


def _read_exact(stream: BinaryIO, n: int) -> bytes:
    buf = bytearray()
    while len(buf) < n:
        chunk = stream.read(n - len(buf))
        if not chunk:
            raise EOFError(f"stream closed after {len(buf)} of {n} bytes")
        buf.extend(chunk)
    return bytes(buf)


def read_message(stream: BinaryIO) -> str:
    """Read one frame from `stream` and return its text.

    Raises `EOFError` when the stream closes before a full frame is read and
    `FrameError` when the payload is not UTF-8.
    """
    (length,) = _HEADER.unpack(_read_exact(stream, _HEADER.size))
    raw = _read_exact(stream, int(length))
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise FrameError(f"frame payload is not valid UTF-8: {exc}") from exc


def write_message(stream: BinaryIO, text: str) -> None:
    raw = text.encode("utf-8")
    stream.write(_HEADER.pack(len(raw)))
    stream.write(raw)
    stream.flush()


__all__ = ["FrameError", "read_message", "write_message"]
