from __future__ import annotations

import socket
import struct

from hazkey_client.ipc.bounded_io import read_all, write_all
from hazkey_client.ipc.constants import (
    FRAME_HEADER_BYTES,
    MAX_FRAME_BYTES,
    MAX_OUTBOUND_FRAME_BYTES,
    READ_TIMEOUT_S,
    WRITE_TIMEOUT_S,
)
from hazkey_client.ipc.protocol import ProtocolError

_HEADER = struct.Struct(">I")


class FrameError(ProtocolError):
    pass


def encode_frame(payload: bytes) -> bytes:
    if len(payload) > MAX_OUTBOUND_FRAME_BYTES:
        raise FrameError("frame_too_large")
    return _HEADER.pack(len(payload)) + payload


def decode_frame_length(header: bytes, *, max_bytes: int = MAX_FRAME_BYTES) -> int:
    if len(header) != FRAME_HEADER_BYTES:
        raise FrameError("short_read")
    (length,) = _HEADER.unpack(header)
    if length > max_bytes:
        raise FrameError("oversized_frame")
    return length


def write_frame(
    sock: socket.socket, payload: bytes, *, timeout_s: float = WRITE_TIMEOUT_S
) -> None:
    if not write_all(sock, encode_frame(payload), timeout_s=timeout_s):
        raise FrameError("write_failed")


def read_frame(
    sock: socket.socket,
    *,
    timeout_s: float = READ_TIMEOUT_S,
    max_bytes: int = MAX_FRAME_BYTES,
) -> bytes:
    """Read one length-prefixed frame and return its payload.

    The declared length is checked against ``max_bytes`` before the body is
    read, so an oversized announcement fails without allocating or waiting
    for the body.
    """
    header = read_all(sock, FRAME_HEADER_BYTES, timeout_s=timeout_s)
    if header is None:
        raise FrameError("short_read")
    length = decode_frame_length(header, max_bytes=max_bytes)
    if length == 0:
        return b""
    body = read_all(sock, length, timeout_s=timeout_s)
    if body is None:
        raise FrameError("short_read")
    return body
