from __future__ import annotations

import select
import socket

from loguru import logger

from hazkey_client.ipc.constants import READ_TIMEOUT_S, WRITE_TIMEOUT_S


def _wait_ready(sock: socket.socket, *, for_write: bool, timeout_s: float) -> bool:
    try:
        if for_write:
            _, ready, _ = select.select([], [sock], [], float(timeout_s))
        else:
            ready, _, _ = select.select([sock], [], [], float(timeout_s))
    except (OSError, ValueError) as exc:
        logger.debug(f"select() failed on socket: {exc}")
        return False
    return bool(ready)


def write_all(
    sock: socket.socket, data: bytes, *, timeout_s: float = WRITE_TIMEOUT_S
) -> bool:
    view = memoryview(data)
    sent = 0
    while sent < len(view):
        try:
            n = sock.send(view[sent:])
        except BlockingIOError:
            if not _wait_ready(sock, for_write=True, timeout_s=timeout_s):
                logger.debug(
                    f"write timeout after {timeout_s}s ({sent}/{len(view)} bytes sent)"
                )
                return False
            continue
        except OSError as exc:
            logger.debug(f"write error: {exc}")
            return False
        sent += n
    return True


def read_all(
    sock: socket.socket, length: int, *, timeout_s: float = READ_TIMEOUT_S
) -> bytes | None:
    buf = bytearray()
    while len(buf) < length:
        try:
            chunk = sock.recv(length - len(buf))
        except BlockingIOError:
            if not _wait_ready(sock, for_write=False, timeout_s=timeout_s):
                logger.debug(
                    f"read timeout after {timeout_s}s ({len(buf)}/{length} bytes read)"
                )
                return None
            continue
        except OSError as exc:
            logger.debug(f"read error: {exc}")
            return None
        if not chunk:
            logger.debug(f"peer closed early ({len(buf)}/{length} bytes read)")
            return None
        buf.extend(chunk)
    return bytes(buf)
