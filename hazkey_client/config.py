from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from hazkey_client.ipc.constants import (
    CONNECT_MAX_ATTEMPTS,
    CONNECT_RETRY_INTERVAL_S,
    CONNECT_TIMEOUT_S,
    READ_TIMEOUT_S,
    SERVER_EXECUTABLE,
    WRITE_TIMEOUT_S,
)

_SERVER_BIN_KEY = "HAZKEY_SERVER_BIN"
_SERVER_LOG_KEY = "HAZKEY_SERVER_LOG"
_AUTOSPAWN_KEY = "HAZKEY_AUTOSPAWN"
_FALSEY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class ClientSettings:
    server_executable: str = SERVER_EXECUTABLE
    server_log_path: Path | None = None
    autospawn: bool = True
    read_timeout_s: float = READ_TIMEOUT_S
    write_timeout_s: float = WRITE_TIMEOUT_S
    connect_timeout_s: float = CONNECT_TIMEOUT_S
    connect_max_attempts: int = CONNECT_MAX_ATTEMPTS
    connect_retry_interval_s: float = CONNECT_RETRY_INTERVAL_S


def load_client_settings(env: Mapping[str, str] | None = None) -> ClientSettings:
    source = os.environ if env is None else env

    executable = (source.get(_SERVER_BIN_KEY) or "").strip() or SERVER_EXECUTABLE

    log_raw = (source.get(_SERVER_LOG_KEY) or "").strip()
    log_path = Path(log_raw).expanduser() if log_raw else None

    autospawn_raw = (source.get(_AUTOSPAWN_KEY) or "").strip().lower()
    autospawn = autospawn_raw not in _FALSEY

    return ClientSettings(
        server_executable=executable,
        server_log_path=log_path,
        autospawn=autospawn,
    )
