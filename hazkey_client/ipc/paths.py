from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from hazkey_client.ipc.constants import SOCKET_NAME_PREFIX

_FALLBACK_RUNTIME_DIR = Path("/tmp")


def runtime_dir(env: Mapping[str, str] | None = None) -> Path:
    source = os.environ if env is None else env
    xdg = source.get("XDG_RUNTIME_DIR") or ""
    if xdg:
        return Path(xdg)
    return _FALLBACK_RUNTIME_DIR


def get_socket_path(
    *, env: Mapping[str, str] | None = None, uid: int | None = None
) -> Path:
    """Resolve the per-user server socket path.

    Not cached: callers recompute it on every connection attempt so that a
    changed ``XDG_RUNTIME_DIR`` is picked up without restarting.
    """
    user = os.getuid() if uid is None else int(uid)
    return runtime_dir(env) / f"{SOCKET_NAME_PREFIX}.{user}.sock"
