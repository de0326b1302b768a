"""Flask application factory for the Alertmanager webhook receiver."""

from __future__ import annotations

import hmac
import logging
from collections.abc import Mapping
from typing import cast

import httpx
from flask import Flask, jsonify, request
from flask.typing import ResponseReturnValue

from .config import RelayConfig
from .errors import MatrixError
from .formatting import parse_alerts
from .matrix import MatrixClient

logger = logging.getLogger(__name__)


def secrets_equal(provided: str | None, expected: str) -> bool:
    """Compare a provided credential with the expected one in constant time."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def is_authorized(expected_secret: str) -> bool:
    if secrets_equal(request.args.get("secret"), expected_secret):
        return True
    return secrets_equal(request.headers.get("Authorization"), f"Bearer {expected_secret}")


def create_app(config: RelayConfig, client: MatrixClient) -> Flask:
    app = Flask(__name__)

    @app.get("/")
    def index() -> ResponseReturnValue:  # pyright: ignore[reportUnusedFunction]
        return "Hey 👋"

    @app.post("/alerts")
    def post_alerts() -> ResponseReturnValue:  # pyright: ignore[reportUnusedFunction]
        if not config.alertmanager_secret:
            logger.error("APP_ALERTMANAGER_SECRET is not configured, unable to authenticate requests")
            return "", 500
        if not is_authorized(config.alertmanager_secret):
            return "", 403

        raw_json = cast(object, request.get_json(force=True, silent=True))
        payload = cast(Mapping[str, object], raw_json) if isinstance(raw_json, dict) else {}
        alerts = parse_alerts(payload, config)
        if not alerts:
            logger.warning("received request with no alerts in payload")
            return jsonify({"result": "no alerts found in payload"})

        receiver = payload.get("receiver")
        room_id = config.room_for_receiver(receiver) if isinstance(receiver, str) else None
        if not room_id:
            logger.warning("received request for unconfigured receiver %s", receiver)
            return jsonify({"result": "no rooms configured for this receiver"})

        try:
            for alert in alerts:
                _ = client.send_alert(room_id, alert)
        except (MatrixError, httpx.HTTPError):
            logger.exception("Failed to deliver %d alert message(s) to %s", len(alerts), room_id)
            return jsonify({"result": "error"}), 500
        return jsonify({"result": "ok"})

    return app


def run_server(app: Flask, host: str = "127.0.0.1", port: int = 3000) -> None:
    app.run(host=host, port=port, debug=False)
