from __future__ import annotations

from enum import StrEnum
from typing import Final


class ResponseStatus(StrEnum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class RequestKind(StrEnum):
    GET_CONFIG = "get_config"
    SET_CONFIG = "set_config"
    CLEAR_ALL_HISTORY = "clear_all_history"
    RELOAD_ZENZAI_MODEL = "reload_zenzai_model"


# Wire framing
FRAME_HEADER_BYTES: Final[int] = 4
MAX_FRAME_BYTES: Final[int] = 2 * 1024 * 1024
MAX_OUTBOUND_FRAME_BYTES: Final[int] = 0xFFFFFFFF

# Bounded waits (seconds). Reads wait longer than writes: the server may build
# config payloads lazily, while it should accept our writes promptly.
WRITE_TIMEOUT_S: Final[float] = 2.0
READ_TIMEOUT_S: Final[float] = 10.0
CONNECT_TIMEOUT_S: Final[float] = 2.0

# Connection establishment
CONNECT_MAX_ATTEMPTS: Final[int] = 3
CONNECT_RETRY_INTERVAL_S: Final[float] = 0.1

# Server process
SERVER_EXECUTABLE: Final[str] = "hazkey-server"
SERVER_REPLACE_FLAG: Final[str] = "-r"
SOCKET_NAME_PREFIX: Final[str] = "hazkey-server"
