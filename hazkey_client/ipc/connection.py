from __future__ import annotations

import errno
import select
import socket
import time
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path

from loguru import logger

from hazkey_client.config import ClientSettings
from hazkey_client.ipc.constants import (
    CONNECT_MAX_ATTEMPTS,
    CONNECT_RETRY_INTERVAL_S,
    CONNECT_TIMEOUT_S,
)
from hazkey_client.ipc.lifecycle import server_spawner
from hazkey_client.ipc.paths import get_socket_path

SpawnAction = Callable[[], None]
SleepAction = Callable[[float], None]
SocketPathFn = Callable[[], Path]


class ConnectState(StrEnum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    SPAWN_AND_RETRY = "SPAWN_AND_RETRY"
    FAILED = "FAILED"


def _noop_spawn() -> None:
    return None


def open_unix_socket(path: Path, *, timeout_s: float = CONNECT_TIMEOUT_S) -> socket.socket | None:
    """One non-blocking connect attempt. Returns the socket or ``None``."""
    try:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    except OSError as exc:
        logger.debug(f"socket() failed: {exc}")
        return None

    try:
        sock.setblocking(False)
        err = sock.connect_ex(str(path))
        if err == 0:
            return sock
        if err == errno.EINPROGRESS:
            _, writable, _ = select.select([], [sock], [], float(timeout_s))
            if writable and sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR) == 0:
                return sock
            logger.debug(f"connect to {path} did not complete within {timeout_s}s")
        else:
            logger.debug(f"connect to {path} failed: {errno.errorcode.get(err, err)}")
    except OSError as exc:
        logger.debug(f"connect to {path} failed: {exc}")

    sock.close()
    return None


class Connector:
    """Establishes connections to the server, launching it when unreachable.

    Each attempt walks CONNECTING -> CONNECTED, or SPAWN_AND_RETRY -> CONNECTING
    until ``max_attempts`` is exhausted (FAILED). The spawn action runs once per
    failed attempt and is followed by the retry delay.
    """

    def __init__(
        self,
        *,
        socket_path: SocketPathFn = get_socket_path,
        spawn: SpawnAction | None = None,
        sleep: SleepAction = time.sleep,
        max_attempts: int = CONNECT_MAX_ATTEMPTS,
        retry_interval_s: float = CONNECT_RETRY_INTERVAL_S,
        connect_timeout_s: float = CONNECT_TIMEOUT_S,
    ) -> None:
        self._socket_path = socket_path
        self._spawn = spawn or _noop_spawn
        self._sleep = sleep
        self._max_attempts = max(1, int(max_attempts))
        self._retry_interval_s = float(retry_interval_s)
        self._connect_timeout_s = float(connect_timeout_s)
        self._state = ConnectState.IDLE

    @classmethod
    def from_settings(
        cls, settings: ClientSettings, *, socket_path: SocketPathFn = get_socket_path
    ) -> Connector:
        return cls(
            socket_path=socket_path,
            spawn=server_spawner(settings),
            max_attempts=settings.connect_max_attempts,
            retry_interval_s=settings.connect_retry_interval_s,
            connect_timeout_s=settings.connect_timeout_s,
        )

    @property
    def state(self) -> ConnectState:
        return self._state

    def _transition(self, state: ConnectState) -> None:
        self._state = state

    def connect(self) -> socket.socket | None:
        for attempt in range(1, self._max_attempts + 1):
            self._transition(ConnectState.CONNECTING)
            path = self._socket_path()
            sock = open_unix_socket(path, timeout_s=self._connect_timeout_s)
            if sock is not None:
                self._transition(ConnectState.CONNECTED)
                return sock

            logger.debug(
                f"Connection attempt {attempt}/{self._max_attempts} to {path} failed; "
                "launching server and retrying"
            )
            self._transition(ConnectState.SPAWN_AND_RETRY)
            try:
                self._spawn()
            except Exception as exc:  # noqa: BLE001
                logger.warning(f"Server spawn action raised: {exc}")
            self._sleep(self._retry_interval_s)

        self._transition(ConnectState.FAILED)
        logger.warning(
            f"Could not connect to hazkey server after {self._max_attempts} attempts"
        )
        return None
