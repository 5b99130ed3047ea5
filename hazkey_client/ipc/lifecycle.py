from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Any

from loguru import logger

from hazkey_client.config import ClientSettings
from hazkey_client.ipc.constants import SERVER_REPLACE_FLAG


def build_server_start_cmd(executable: str) -> list[str]:
    return [str(executable), SERVER_REPLACE_FLAG]


def spawn_detached(
    *,
    cmd: list[str],
    log_path: Path | None = None,
    env: dict[str, str] | None = None,
    banner: str = "[hazkeyctl]",
) -> int | None:
    """Start ``cmd`` in its own session and return its pid without waiting.

    Returns ``None`` when the process could not be started; the caller never
    observes the child afterwards.
    """
    env_out = dict(env) if env is not None else os.environ.copy()
    popen_kwargs: dict[str, Any] = {
        "env": env_out,
        "stdin": subprocess.DEVNULL,
        "stderr": subprocess.STDOUT,
        "start_new_session": True,
    }

    try:
        if log_path is None:
            popen = subprocess.Popen(  # noqa: S603
                cmd, stdout=subprocess.DEVNULL, **popen_kwargs
            )
        else:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with log_path.open("ab", buffering=0) as log_f:
                log_f.write(
                    f"{banner} starting server: {' '.join(cmd)}\n".encode(
                        "utf-8", errors="replace"
                    )
                )
                popen = subprocess.Popen(cmd, stdout=log_f, **popen_kwargs)  # noqa: S603
    except OSError as exc:
        logger.warning(f"Failed to launch {cmd[0]}: {exc}")
        return None
    return int(popen.pid)


def server_spawner(settings: ClientSettings):
    """Build the spawn action used by the connector for these settings."""

    def _spawn() -> None:
        cmd = build_server_start_cmd(settings.server_executable)
        pid = spawn_detached(cmd=cmd, log_path=settings.server_log_path)
        if pid is not None:
            logger.debug(f"Spawned {cmd[0]} (pid={pid})")

    def _noop() -> None:
        logger.debug("Server auto-spawn disabled; not launching")

    return _spawn if settings.autospawn else _noop
