"""Minimal Matrix client-server API client for posting alerts."""

from __future__ import annotations

import html
import logging
import re
import uuid
from types import TracebackType
from typing import Self, cast
from urllib.parse import quote

import httpx

from .config import DEFAULT_MESSAGE_TYPE
from .errors import MatrixError

logger = logging.getLogger(__name__)

API_PREFIX = "/_matrix/client/v3"
HTML_FORMAT = "org.matrix.custom.html"

_TAG_RE = re.compile(r"<[^>]+>")


def strip_tags(body: str) -> str:
    """Return the plain-text fallback for an HTML message body."""
    return html.unescape(_TAG_RE.sub("", body))


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = cast(object, response.json())
    except ValueError:
        return response.text
    if isinstance(payload, dict):
        error = cast(dict[str, object], payload).get("error")
        if isinstance(error, str):
            return error
    return response.text


class MatrixClient:
    """
    Posts HTML messages to Matrix rooms.

    Args:
        homeserver_url: Base URL of the homeserver, e.g. https://matrix.example.org
        access_token: Access token of the bot account
        message_type: ``msgtype`` of sent events (``m.text`` or ``m.notice``)
        timeout: Request timeout in seconds
        transport: Optional httpx transport, used by tests
    """

    def __init__(
        self,
        homeserver_url: str,
        access_token: str,
        *,
        message_type: str = DEFAULT_MESSAGE_TYPE,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.homeserver_url: str = homeserver_url.rstrip("/")
        self.message_type: str = message_type
        self._client: httpx.Client = httpx.Client(
            base_url=self.homeserver_url + API_PREFIX,
            timeout=timeout,
            headers={"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"},
            transport=transport,
        )

    def _handle(self, response: httpx.Response) -> dict[str, object]:
        if response.status_code >= 400:
            raise MatrixError(response.status_code, _error_detail(response))
        payload = cast(object, response.json())
        return cast(dict[str, object], payload) if isinstance(payload, dict) else {}

    def join_room(self, room_id: str) -> str:
        """Join ``room_id`` (a room id or alias) and return the joined room id."""
        response = self._client.post(f"/join/{quote(room_id, safe='')}", json={})
        data = self._handle(response)
        joined = data.get("room_id")
        return joined if isinstance(joined, str) else room_id

    def send_alert(self, room_id: str, html_body: str) -> str:
        """Send a formatted alert message and return the resulting event id."""
        content = {
            "msgtype": self.message_type,
            "format": HTML_FORMAT,
            "body": strip_tags(html_body),
            "formatted_body": html_body,
        }
        txn_id = uuid.uuid4().hex
        path = f"/rooms/{quote(room_id, safe='')}/send/m.room.message/{txn_id}"
        data = self._handle(self._client.put(path, json=content))
        event_id = data.get("event_id")
        logger.info("Sent alert to %s (event %s)", room_id, event_id)
        return event_id if isinstance(event_id, str) else ""

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
