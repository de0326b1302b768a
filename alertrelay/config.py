"""Configuration loaded from environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from .errors import ConfigError

APP_NAME = "alertrelay"
DEFAULT_PORT = 3000
DEFAULT_MESSAGE_TYPE = "m.text"


@dataclass(frozen=True)
class RelayConfig:
    port: int = DEFAULT_PORT
    alertmanager_secret: str = ""
    homeserver_url: str = ""
    matrix_token: str = ""
    matrix_user: str = ""
    rooms: dict[str, str] = field(default_factory=dict)
    message_type: str = DEFAULT_MESSAGE_TYPE
    mention_room: bool = False
    respect_groupby: bool = False
    grafana_url: str = ""
    grafana_datasource: str = ""
    grafana_loki_datasource: str = ""
    alertmanager_url: str = ""

    def room_for_receiver(self, receiver: str) -> str | None:
        return self.rooms.get(receiver)

    def validate_for_delivery(self) -> None:
        """Raise ConfigError unless the settings needed to post to Matrix are present."""
        missing = [
            name
            for name, value in (("MATRIX_HOMESERVER_URL", self.homeserver_url), ("MATRIX_TOKEN", self.matrix_token))
            if not value
        ]
        if missing:
            raise ConfigError(f"Missing required setting(s): {', '.join(missing)}")
        if not self.rooms:
            raise ConfigError("MATRIX_ROOMS must map at least one receiver to a room.")


def parse_room_map(value: str) -> dict[str, str]:
    """Parse ``receiver/roomId`` pairs separated by ``|``."""
    rooms: dict[str, str] = {}
    for entry in value.split("|"):
        receiver, sep, room_id = entry.strip().partition("/")
        if not sep or not receiver or not room_id:
            continue
        rooms.setdefault(receiver, room_id)
    return rooms


def _flag(value: str | None) -> bool:
    return value == "1"


def load_config(environ: Mapping[str, str] | None = None) -> RelayConfig:
    """Build a RelayConfig from ``environ`` (defaults to ``os.environ``)."""
    env = os.environ if environ is None else environ
    raw_port = env.get("APP_PORT", "").strip()
    if raw_port:
        try:
            port = int(raw_port)
        except ValueError as exc:
            raise ConfigError(f"APP_PORT must be an integer, got {raw_port!r}.") from exc
    else:
        port = DEFAULT_PORT
    return RelayConfig(
        port=port,
        alertmanager_secret=env.get("APP_ALERTMANAGER_SECRET", ""),
        homeserver_url=env.get("MATRIX_HOMESERVER_URL", "").rstrip("/"),
        matrix_token=env.get("MATRIX_TOKEN", ""),
        matrix_user=env.get("MATRIX_USER", ""),
        rooms=parse_room_map(env.get("MATRIX_ROOMS", "")),
        message_type=env.get("MATRIX_MESSAGE_TYPE") or DEFAULT_MESSAGE_TYPE,
        mention_room=_flag(env.get("MENTION_ROOM")),
        respect_groupby=_flag(env.get("RESPECT_GROUPBY")),
        grafana_url=env.get("GRAFANA_URL", "").rstrip("/"),
        grafana_datasource=env.get("GRAFANA_DATASOURCE", ""),
        grafana_loki_datasource=env.get("GRAFANA_LOKI_DATASOURCE", ""),
        alertmanager_url=env.get("ALERTMANAGER_URL", "").rstrip("/"),
    )
