from __future__ import annotations

import threading
from collections.abc import Callable

from loguru import logger

from hazkey_client.ipc.constants import RequestKind
from hazkey_client.ipc.protocol import (
    CurrentConfig,
    Profile,
    ProtocolError,
    Request,
    ResponseEnvelope,
    decode_request,
    encode_response,
)

FrameHandler = Callable[[bytes], bytes]


class ServerState:
    """In-memory stand-in for the server's configuration store."""

    def __init__(self, config: CurrentConfig | None = None) -> None:
        self._lock = threading.Lock()
        self._config = config or CurrentConfig()
        self.cleared_profiles: list[str] = []
        self.reload_count = 0

    @property
    def config(self) -> CurrentConfig:
        with self._lock:
            return self._config.model_copy(deep=True)

    def get_config(self) -> ResponseEnvelope:
        return ResponseEnvelope.success(current_config=self.config)

    def set_config(self, profiles: list[Profile]) -> ResponseEnvelope:
        with self._lock:
            self._config = self._config.model_copy(
                update={"profiles": list(profiles)}, deep=True
            )
        return ResponseEnvelope.success()

    def clear_all_history(self, profile_id: str) -> ResponseEnvelope:
        with self._lock:
            known = {p.profile_id for p in self._config.profiles}
            if profile_id not in known:
                return ResponseEnvelope.failed(f"unknown_profile: {profile_id}")
            self.cleared_profiles.append(profile_id)
        return ResponseEnvelope.success()

    def reload_zenzai_model(self) -> ResponseEnvelope:
        with self._lock:
            self.reload_count += 1
        return ResponseEnvelope.success()


def dispatch(state: ServerState, request: Request) -> ResponseEnvelope:
    """Dispatch a decoded request to the state by its kind."""

    kind = request.kind
    if kind == RequestKind.GET_CONFIG:
        return state.get_config()
    if kind == RequestKind.SET_CONFIG:
        return state.set_config(request.profiles)  # type: ignore[union-attr]
    if kind == RequestKind.CLEAR_ALL_HISTORY:
        return state.clear_all_history(request.profile_id)  # type: ignore[union-attr]
    if kind == RequestKind.RELOAD_ZENZAI_MODEL:
        return state.reload_zenzai_model()

    return ResponseEnvelope.failed(f"unknown_request: {kind}")


def envelope_handler(state: ServerState) -> FrameHandler:
    def _handle(payload: bytes) -> bytes:
        try:
            request = decode_request(payload)
        except ProtocolError as exc:
            return encode_response(ResponseEnvelope.failed(exc.code))
        try:
            resp = dispatch(state, request)
        except Exception as exc:  # noqa: BLE001
            logger.exception(f"Request dispatch error: {exc}")
            resp = ResponseEnvelope.failed(str(exc))
        return encode_response(resp)

    return _handle
