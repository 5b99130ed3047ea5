from __future__ import annotations

import socket
import time
from pathlib import Path

import pytest

from hazkey_client.config import ClientSettings
from hazkey_client.ipc.connection import ConnectState, Connector, open_unix_socket
from hazkey_client.testing.stub_server import SpawnSpy


def _listen(path: Path) -> socket.socket:
    srv = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    srv.bind(str(path))
    srv.listen(8)
    return srv


def test_no_listener_tries_three_times_and_spawns_each_time(sock_path: Path) -> None:
    spy = SpawnSpy()
    calls: list[Path] = []

    def _path() -> Path:
        calls.append(sock_path)
        return sock_path

    connector = Connector(socket_path=_path, spawn=spy.spawn, sleep=spy.sleep)
    assert connector.state == ConnectState.IDLE

    assert connector.connect() is None
    assert len(calls) == 3
    assert spy.calls == 3
    assert spy.sleeps == [0.1, 0.1, 0.1]
    assert connector.state == ConnectState.FAILED


def test_retry_delay_is_real_time(sock_path: Path) -> None:
    spy = SpawnSpy()
    connector = Connector(socket_path=lambda: sock_path, spawn=spy.spawn)
    started = time.monotonic()
    assert connector.connect() is None
    elapsed = time.monotonic() - started
    assert 0.3 <= elapsed < 3.0
    assert spy.calls == 3


def test_connects_immediately_when_listening(sock_path: Path) -> None:
    spy = SpawnSpy()
    srv = _listen(sock_path)
    try:
        connector = Connector(socket_path=lambda: sock_path, spawn=spy.spawn, sleep=spy.sleep)
        sock = connector.connect()
        assert sock is not None
        try:
            assert sock.getblocking() is False
            assert connector.state == ConnectState.CONNECTED
        finally:
            sock.close()
    finally:
        srv.close()
    assert spy.calls == 0
    assert spy.sleeps == []


def test_spawn_brings_server_up_for_next_attempt(sock_path: Path) -> None:
    listeners: list[socket.socket] = []
    spawned: list[int] = []

    def _spawn() -> None:
        spawned.append(1)
        listeners.append(_listen(sock_path))

    connector = Connector(socket_path=lambda: sock_path, spawn=_spawn, sleep=lambda _s: None)
    sock = connector.connect()
    try:
        assert sock is not None
        assert spawned == [1]
        assert connector.state == ConnectState.CONNECTED
    finally:
        if sock is not None:
            sock.close()
        for srv in listeners:
            srv.close()


def test_socket_path_resolved_on_every_attempt(tmp_path: Path, sock_path: Path) -> None:
    paths = [tmp_path / "missing-1.sock", tmp_path / "missing-2.sock", sock_path]
    seen: list[Path] = []
    srv = _listen(sock_path)

    def _path() -> Path:
        p = paths[len(seen)]
        seen.append(p)
        return p

    try:
        connector = Connector(socket_path=_path, sleep=lambda _s: None)
        sock = connector.connect()
        assert sock is not None
        sock.close()
    finally:
        srv.close()
    assert seen == paths


def test_spawn_errors_do_not_abort_retries(sock_path: Path) -> None:
    attempts: list[int] = []

    def _boom() -> None:
        attempts.append(1)
        raise RuntimeError("spawn failed")

    connector = Connector(socket_path=lambda: sock_path, spawn=_boom, sleep=lambda _s: None)
    assert connector.connect() is None
    assert len(attempts) == 3


def test_overlong_socket_path_is_a_connection_failure() -> None:
    path = Path("/tmp") / ("x" * 300)
    assert open_unix_socket(path, timeout_s=0.1) is None


def test_from_settings_honours_attempts(sock_path: Path) -> None:
    settings = ClientSettings(autospawn=False, connect_max_attempts=2, connect_retry_interval_s=0.0)
    connector = Connector.from_settings(settings, socket_path=lambda: sock_path)
    started = time.monotonic()
    assert connector.connect() is None
    assert time.monotonic() - started < 1.0


@pytest.mark.parametrize("attempts", [0, -1])
def test_at_least_one_attempt(sock_path: Path, attempts: int) -> None:
    spy = SpawnSpy()
    connector = Connector(
        socket_path=lambda: sock_path, spawn=spy.spawn, sleep=spy.sleep, max_attempts=attempts
    )
    assert connector.connect() is None
    assert spy.calls == 1
