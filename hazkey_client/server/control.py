from __future__ import annotations

import os
import socket
import socketserver
import threading
from pathlib import Path

from loguru import logger

from hazkey_client.ipc.framing import FrameError, read_frame, write_frame
from hazkey_client.server.api import FrameHandler


class _Handler(socketserver.BaseRequestHandler):
    def setup(self) -> None:
        self.server.track(self.request)  # type: ignore[attr-defined]

    def finish(self) -> None:
        self.server.untrack(self.request)  # type: ignore[attr-defined]

    def handle(self) -> None:  # noqa: D401
        """Serve length-prefixed frames on one connection until the peer closes."""
        handler: FrameHandler = self.server.frame_handler  # type: ignore[attr-defined]
        while True:
            try:
                payload = read_frame(self.request)
            except FrameError as exc:
                if exc.code != "short_read":
                    logger.debug(f"Dropping client connection: {exc.code}")
                return
            try:
                write_frame(self.request, handler(payload))
            except FrameError as exc:
                logger.debug(f"Failed to reply to client: {exc.code}")
                return


class _Server(socketserver.ThreadingMixIn, socketserver.UnixStreamServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, sock_path: str, frame_handler: FrameHandler) -> None:
        self.frame_handler = frame_handler
        self._conn_lock = threading.Lock()
        self._connections: set[socket.socket] = set()
        super().__init__(sock_path, _Handler)

    def track(self, conn: socket.socket) -> None:
        with self._conn_lock:
            self._connections.add(conn)

    def untrack(self, conn: socket.socket) -> None:
        with self._conn_lock:
            self._connections.discard(conn)

    def drop_connections(self) -> None:
        """Shut down every live client connection so peers see EOF."""
        with self._conn_lock:
            conns = list(self._connections)
        for conn in conns:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError as exc:
                logger.debug(f"Client connection already closed: {exc}")


class HazkeyServer:
    def __init__(self, *, sock_path: Path, handler: FrameHandler) -> None:
        self._sock_path = Path(sock_path)
        self._handler = handler
        self._thread: threading.Thread | None = None
        self._server: _Server | None = None

    @property
    def sock_path(self) -> Path:
        return self._sock_path

    def start(self) -> None:
        self._sock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            if self._sock_path.exists():
                self._sock_path.unlink()
        except OSError as exc:
            logger.warning(f"Failed to remove existing socket at {self._sock_path}: {exc}")

        try:
            self._server = _Server(str(self._sock_path), self._handler)
        except OSError as exc:
            logger.error(f"Failed to bind server socket at {self._sock_path}: {exc}")
            raise

        try:
            os.chmod(self._sock_path, 0o600)
        except OSError as exc:
            logger.debug(f"Failed to chmod socket {self._sock_path}: {exc}")

        def _serve() -> None:
            assert self._server is not None
            self._server.serve_forever(poll_interval=0.1)

        self._thread = threading.Thread(target=_serve, name="hazkey-server", daemon=True)
        self._thread.start()
        logger.info(f"Listening on {self._sock_path}")

    def serve_forever(self) -> None:
        self.start()
        assert self._thread is not None
        try:
            while self._thread.is_alive():
                self._thread.join(timeout=0.5)
        except KeyboardInterrupt:
            logger.info("Interrupted; shutting down")
        finally:
            self.stop()

    def stop(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server.drop_connections()
            try:
                self._server.server_close()
            except OSError as exc:
                logger.debug(f"Failed to close server socket: {exc}")
            self._server = None

        if self._thread is not None:
            self._thread.join(timeout=2)
            self._thread = None

        try:
            if self._sock_path.exists():
                self._sock_path.unlink()
        except OSError as exc:
            logger.debug(f"Failed to remove socket {self._sock_path}: {exc}")
