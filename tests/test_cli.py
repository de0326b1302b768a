from __future__ import annotations

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch
from typing_extensions import override

from typer.testing import CliRunner

from alertrelay.cli import app
from alertrelay.errors import MatrixError

SERVE_ENV = {
    "MATRIX_HOMESERVER_URL": "https://matrix.example.org",
    "MATRIX_TOKEN": "token",
    "MATRIX_ROOMS": "matrix/!room:example.org|ops/!ops:example.org",
    "APP_ALERTMANAGER_SECRET": "s3cret",
}


def _write_payload(directory: Path, payload: object) -> Path:
    path = directory / "payload.json"
    _ = path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def _webhook_payload() -> dict[str, object]:
    return {
        "receiver": "matrix",
        "status": "firing",
        "commonLabels": {"alertname": "NodeDown"},
        "alerts": [
            {"status": "firing", "labels": {"alertname": "NodeDown"}, "annotations": {"summary": "Error on host-1"}},
            {"status": "firing", "labels": {"alertname": "NodeDown"}, "annotations": {"summary": "Error on host-2"}},
        ],
    }


class CLITests(unittest.TestCase):
    runner: CliRunner

    @override
    def setUp(self) -> None:
        self.runner = CliRunner()

    def test_merge_prints_template(self) -> None:
        result = self.runner.invoke(app, ["merge", "Error on host-1", "Error on host-2"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output.strip(), "Error on {host-1, host-2}")

    def test_merge_single_string(self) -> None:
        result = self.runner.invoke(app, ["merge", "only one"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output.strip(), "only one")

    def test_merge_without_strings_fails(self) -> None:
        result = self.runner.invoke(app, ["merge"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("No strings to merge.", result.output)

    def test_format_prints_one_message_per_alert(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir, patch.dict(os.environ, {}, clear=True):
            path = _write_payload(Path(tmp_dir), _webhook_payload())
            result = self.runner.invoke(app, ["format", str(path)])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Error on host-1", result.output)
        self.assertIn("Error on host-2", result.output)
        self.assertNotIn("{host-1, host-2}", result.output)

    def test_format_grouped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir, patch.dict(os.environ, {}, clear=True):
            path = _write_payload(Path(tmp_dir), _webhook_payload())
            result = self.runner.invoke(app, ["format", str(path), "--group"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Error on {host-1, host-2}", result.output)
        self.assertIn("<details>", result.output)

    def test_format_empty_payload(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir, patch.dict(os.environ, {}, clear=True):
            path = _write_payload(Path(tmp_dir), {"alerts": []})
            result = self.runner.invoke(app, ["format", str(path)])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("No alerts found in payload.", result.output)

    def test_format_rejects_invalid_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir, patch.dict(os.environ, {}, clear=True):
            path = Path(tmp_dir) / "payload.json"
            _ = path.write_text("{not json", encoding="utf-8")
            result = self.runner.invoke(app, ["format", str(path)])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Invalid JSON", result.output)

    def test_format_rejects_non_object_payload(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir, patch.dict(os.environ, {}, clear=True):
            path = _write_payload(Path(tmp_dir), [1, 2, 3])
            result = self.runner.invoke(app, ["format", str(path)])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Payload must be a JSON object.", result.output)

    def test_serve_joins_rooms_and_runs_server(self) -> None:
        fake_app = object()
        client = MagicMock()
        with patch.dict(os.environ, SERVE_ENV, clear=True), patch(
            "alertrelay.cli.MatrixClient", return_value=client
        ) as client_cls, patch("alertrelay.cli.create_app", return_value=fake_app) as create_app_mock, patch(
            "alertrelay.cli.run_server"
        ) as run_server_mock:
            result = self.runner.invoke(app, ["serve", "--port", "9999"])

        self.assertEqual(result.exit_code, 0, result.output)
        client_cls.assert_called_once_with("https://matrix.example.org", "token", message_type="m.text")
        self.assertEqual(
            [call.args[0] for call in client.join_room.call_args_list], ["!ops:example.org", "!room:example.org"]
        )
        self.assertIs(create_app_mock.call_args.args[1], client)
        run_server_mock.assert_called_once_with(fake_app, host="0.0.0.0", port=9999)
        client.close.assert_called_once()

    def test_serve_uses_configured_port(self) -> None:
        with patch.dict(os.environ, {**SERVE_ENV, "APP_PORT": "4000"}, clear=True), patch(
            "alertrelay.cli.MatrixClient"
        ), patch("alertrelay.cli.create_app"), patch("alertrelay.cli.run_server") as run_server_mock:
            result = self.runner.invoke(app, ["serve", "--no-join-rooms"])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(run_server_mock.call_args.kwargs["port"], 4000)

    def test_serve_skips_join_when_disabled(self) -> None:
        client = MagicMock()
        with patch.dict(os.environ, SERVE_ENV, clear=True), patch(
            "alertrelay.cli.MatrixClient", return_value=client
        ), patch("alertrelay.cli.create_app"), patch("alertrelay.cli.run_server"):
            result = self.runner.invoke(app, ["serve", "--no-join-rooms"])

        self.assertEqual(result.exit_code, 0, result.output)
        client.join_room.assert_not_called()

    def test_serve_continues_when_join_fails(self) -> None:
        client = MagicMock()
        client.join_room.side_effect = MatrixError(403, "not invited")
        with patch.dict(os.environ, SERVE_ENV, clear=True), patch(
            "alertrelay.cli.MatrixClient", return_value=client
        ), patch("alertrelay.cli.create_app"), patch("alertrelay.cli.run_server") as run_server_mock:
            result = self.runner.invoke(app, ["serve"])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(client.join_room.call_count, 2)
        run_server_mock.assert_called_once()

    def test_serve_requires_matrix_settings(self) -> None:
        with patch.dict(os.environ, {}, clear=True), patch("alertrelay.cli.run_server") as run_server_mock:
            result = self.runner.invoke(app, ["serve"])

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Configuration error", result.output)
        run_server_mock.assert_not_called()

    def test_serve_rejects_invalid_port_variable(self) -> None:
        with patch.dict(os.environ, {**SERVE_ENV, "APP_PORT": "abc"}, clear=True), patch(
            "alertrelay.cli.run_server"
        ) as run_server_mock:
            result = self.runner.invoke(app, ["serve"])

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Configuration error", result.output)
        run_server_mock.assert_not_called()
