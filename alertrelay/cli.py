"""Command-line interface for alertrelay."""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import Annotated, cast

import httpx
import typer

from .config import APP_NAME, RelayConfig, load_config
from .errors import ConfigError, EmptyInputError, MatrixError
from .formatting import parse_alerts
from .matrix import MatrixClient
from .merging import merge_strings
from .server import create_app, run_server

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False, no_args_is_help=True, help="Relay Alertmanager alerts to Matrix rooms")


def _load_config_or_exit() -> RelayConfig:
    try:
        return load_config()
    except ConfigError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _join_rooms(client: MatrixClient, config: RelayConfig) -> None:
    for room_id in sorted(set(config.rooms.values())):
        try:
            _ = client.join_room(room_id)
        except (MatrixError, httpx.HTTPError) as exc:
            logger.warning("Could not join room %s: %s", room_id, exc)


@app.command()
def serve(
    host: Annotated[str, typer.Option(help="Interface to listen on")] = "0.0.0.0",
    port: Annotated[int | None, typer.Option(help="Port to listen on (defaults to APP_PORT)")] = None,
    log_level: Annotated[str, typer.Option(help="Logging level")] = "INFO",
    join_rooms: Annotated[bool, typer.Option(help="Join every configured room before serving")] = True,
) -> None:
    """Receive Alertmanager webhooks and post them to Matrix."""
    logging.basicConfig(level=log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = _load_config_or_exit()
    try:
        config.validate_for_delivery()
    except ConfigError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    client = MatrixClient(config.homeserver_url, config.matrix_token, message_type=config.message_type)
    try:
        if join_rooms:
            _join_rooms(client, config)
        app_instance = create_app(config, client)
        run_server(app_instance, host=host, port=port or config.port)
    finally:
        client.close()


@app.command("merge")
def merge_command(
    strings: Annotated[list[str] | None, typer.Argument(help="Near-duplicate strings to merge")] = None,
) -> None:
    """Print the template merging the given strings."""
    try:
        typer.echo(merge_strings(strings or []))
    except EmptyInputError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc


@app.command("format")
def format_command(
    payload: Annotated[Path, typer.Argument(exists=True, readable=True, dir_okay=False, resolve_path=True)],
    group: Annotated[bool | None, typer.Option("--group/--no-group", help="Override RESPECT_GROUPBY")] = None,
) -> None:
    """Print the messages a saved webhook payload would produce, without sending them."""
    config = _load_config_or_exit()
    if group is not None:
        config = dataclasses.replace(config, respect_groupby=group)
    try:
        raw = cast(object, json.loads(payload.read_text(encoding="utf-8")))
    except json.JSONDecodeError as exc:
        typer.echo(f"Invalid JSON in {payload}: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    if not isinstance(raw, dict):
        typer.echo("Payload must be a JSON object.", err=True)
        raise typer.Exit(code=1)

    messages = parse_alerts(cast(dict[str, object], raw), config)
    if not messages:
        typer.echo("No alerts found in payload.")
        return
    typer.echo("\n\n".join(messages))


def run() -> None:
    app(prog_name=APP_NAME)
