from __future__ import annotations

import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, NoReturn

import click
from loguru import logger

from hazkey_client.config import load_client_settings
from hazkey_client.ipc.client import ServerConnector
from hazkey_client.ipc.paths import get_socket_path
from hazkey_client.ipc.protocol import CurrentConfig, ProtocolError, config_from_json
from hazkey_client.server import HazkeyServer, ServerState, envelope_handler


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _fail(error: str, **details: Any) -> NoReturn:
    _echo_json({"ok": False, "error": error, **details})
    sys.exit(1)


def _load_config_file(path: Path) -> CurrentConfig:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise click.UsageError(f"Cannot read configuration from {path}: {exc}") from exc
    try:
        return config_from_json(data)
    except ProtocolError as exc:
        raise click.UsageError(f"{path}: {exc.code}") from exc


def _connector(ctx: click.Context) -> ServerConnector:
    return ctx.obj["connector"]


@click.group(name="hazkeyctl", help="Talk to the local hazkey conversion server.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
@click.option(
    "--spawn/--no-spawn",
    default=None,
    help="Launch the server when it is not reachable (default: HAZKEY_AUTOSPAWN).",
)
@click.pass_context
def hazkey_cli(ctx: click.Context, log_level: str, spawn: bool | None) -> None:
    logger.remove()
    logger.add(sys.stderr, level=str(log_level).upper())

    settings = load_client_settings()
    if spawn is not None:
        settings = replace(settings, autospawn=bool(spawn))

    ctx.ensure_object(dict)
    ctx.obj.setdefault("connector", ServerConnector(settings=settings))
    ctx.call_on_close(ctx.obj["connector"].close)


@hazkey_cli.command(name="socket-path", help="Print the server socket path.")
def socket_path_cmd() -> None:
    click.echo(str(get_socket_path()))


@hazkey_cli.command(name="get-config", help="Fetch the current configuration.")
@click.pass_context
def get_config_cmd(ctx: click.Context) -> None:
    config = _connector(ctx).get_config()
    if config is None:
        _fail("get_config_failed")
    _echo_json({"ok": True, "result": config.model_dump(mode="json")})


@hazkey_cli.command(name="set-config", help="Replace the profiles from a JSON file.")
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def set_config_cmd(ctx: click.Context, config_file: Path) -> None:
    config = _load_config_file(config_file)
    if not _connector(ctx).set_current_config(config):
        _fail("set_config_failed")
    _echo_json({"ok": True, "result": {"profiles": len(config.profiles)}})


@hazkey_cli.command(name="clear-history", help="Clear learning history of a profile.")
@click.argument("profile_id")
@click.pass_context
def clear_history_cmd(ctx: click.Context, profile_id: str) -> None:
    if not _connector(ctx).clear_all_history(profile_id):
        _fail("clear_history_failed", profile_id=profile_id)
    _echo_json({"ok": True, "result": {"profile_id": profile_id}})


@hazkey_cli.command(
    name="reload-model",
    help="Reload the Zenzai model and re-read the configuration in one session.",
)
@click.pass_context
def reload_model_cmd(ctx: click.Context) -> None:
    connector = _connector(ctx)
    if not connector.begin_session():
        _fail("connect_failed", sock_path=str(get_socket_path()))
    try:
        reloaded = connector.reload_zenzai_model_in_session()
        if not reloaded:
            logger.warning("Failed to reload Zenzai model")
        config = connector.get_config_in_session()
    finally:
        connector.end_session()

    if config is None:
        _fail("get_config_failed", reloaded=reloaded)
    _echo_json(
        {
            "ok": True,
            "result": {"reloaded": reloaded, "config": config.model_dump(mode="json")},
        }
    )


@hazkey_cli.command(
    name="serve",
    help="Run an in-memory reference server on the socket path (for development).",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON configuration to seed the server with.",
)
def serve_cmd(config_file: Path | None) -> None:
    config = _load_config_file(config_file) if config_file else None
    server = HazkeyServer(
        sock_path=get_socket_path(), handler=envelope_handler(ServerState(config))
    )
    server.serve_forever()
