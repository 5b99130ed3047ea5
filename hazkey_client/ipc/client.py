from __future__ import annotations

import socket
import threading
from types import TracebackType

from loguru import logger

from hazkey_client.config import ClientSettings, load_client_settings
from hazkey_client.ipc.connection import Connector
from hazkey_client.ipc.framing import read_frame, write_frame
from hazkey_client.ipc.protocol import (
    ClearAllHistory,
    CurrentConfig,
    Failure,
    GetConfig,
    ProtocolError,
    ReloadZenzaiModel,
    Request,
    ResponseEnvelope,
    SetConfig,
    decode_response,
    encode_request,
)


class ServerConnector:
    """Client side of the hazkey server protocol.

    Every frame exchange and every connection attempt happens under one lock
    owned by this instance: the protocol has no request ids, so a response is
    only meaningful as the reply to the request written just before it on the
    same connection.

    Failures of any kind (unreachable server, framing, decode, non-success
    status) surface as ``None`` / ``False``.
    """

    def __init__(
        self,
        *,
        connector: Connector | None = None,
        settings: ClientSettings | None = None,
    ) -> None:
        self._settings = settings or load_client_settings()
        self._connector = connector or Connector.from_settings(self._settings)
        self._lock = threading.Lock()
        self._session_sock: socket.socket | None = None

    def __enter__(self) -> ServerConnector:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def connector(self) -> Connector:
        return self._connector

    @property
    def in_session(self) -> bool:
        # Status check only; no lock so it never waits behind an exchange.
        return self._session_sock is not None

    # -- framing -----------------------------------------------------------

    def _exchange(self, sock: socket.socket, payload: bytes) -> bytes | None:
        # Caller holds self._lock.
        try:
            write_frame(sock, payload, timeout_s=self._settings.write_timeout_s)
            return read_frame(sock, timeout_s=self._settings.read_timeout_s)
        except ProtocolError as exc:
            logger.debug(f"Frame exchange failed: {exc.code}")
            return None

    @staticmethod
    def _encode(request: Request) -> bytes | None:
        try:
            return encode_request(request)
        except ProtocolError as exc:
            logger.debug(f"Request encoding failed: {exc.code}")
            return None

    @staticmethod
    def _decode(raw: bytes | None) -> ResponseEnvelope | None:
        if raw is None:
            return None
        try:
            return decode_response(raw)
        except ProtocolError as exc:
            logger.debug(f"Response decoding failed: {exc.code}")
            return None

    # -- one-shot ----------------------------------------------------------

    def transact_raw(self, payload: bytes) -> bytes | None:
        """Send one frame on a fresh connection and return the reply frame."""
        with self._lock:
            sock = self._connector.connect()
            if sock is None:
                return None
            try:
                return self._exchange(sock, payload)
            finally:
                sock.close()

    def transact(self, request: Request) -> ResponseEnvelope | None:
        payload = self._encode(request)
        if payload is None:
            return None
        return self._decode(self.transact_raw(payload))

    # -- sessions ----------------------------------------------------------

    def begin_session(self) -> bool:
        with self._lock:
            if self._session_sock is not None:
                self._session_sock.close()
                self._session_sock = None
            self._session_sock = self._connector.connect()
            return self._session_sock is not None

    def end_session(self) -> None:
        with self._lock:
            if self._session_sock is not None:
                self._session_sock.close()
                self._session_sock = None

    close = end_session

    def transact_in_session(self, request: Request) -> ResponseEnvelope | None:
        payload = self._encode(request)
        if payload is None:
            return None
        with self._lock:
            if self._session_sock is None:
                logger.debug("No active session")
                return None
            raw = self._exchange(self._session_sock, payload)
            if raw is None:
                # A late reply or partial frame may still be queued; the
                # connection can no longer pair responses with requests.
                logger.warning("Session exchange failed; closing session connection")
                self._session_sock.close()
                self._session_sock = None
                return None
        return self._decode(raw)

    def get_config_in_session(self) -> CurrentConfig | None:
        return _config_from(self.transact_in_session(GetConfig()))

    def reload_zenzai_model_in_session(self) -> bool:
        return _succeeded(self.transact_in_session(ReloadZenzaiModel()))

    # -- request helpers ---------------------------------------------------

    def get_config(self) -> CurrentConfig | None:
        return _config_from(self.transact(GetConfig()))

    def set_current_config(self, config: CurrentConfig) -> bool:
        return _succeeded(self.transact(SetConfig(profiles=list(config.profiles))))

    def clear_all_history(self, profile_id: str) -> bool:
        return _succeeded(self.transact(ClearAllHistory(profile_id=str(profile_id))))

    def reload_zenzai_model(self) -> bool:
        return _succeeded(self.transact(ReloadZenzaiModel()))


def _succeeded(response: ResponseEnvelope | None) -> bool:
    if response is None:
        return False
    outcome = response.outcome()
    if isinstance(outcome, Failure):
        logger.debug(f"Server reported failure: {outcome.reason}")
        return False
    return True


def _config_from(response: ResponseEnvelope | None) -> CurrentConfig | None:
    if response is None:
        return None
    outcome = response.outcome()
    if isinstance(outcome, Failure):
        logger.debug(f"Server reported failure: {outcome.reason}")
        return None
    if outcome.value is None:
        logger.debug("Success response carried no configuration")
        return None
    return outcome.value
