"""Render Alertmanager alerts as Matrix HTML messages."""

from __future__ import annotations

import html
import json
import logging
import re
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, quote, urlsplit

from .alerts import Alert, AlertGroup, parse_alert_group
from .config import RelayConfig
from .errors import MergeError
from .merging import merge_strings

logger = logging.getLogger(__name__)

SEVERITY_COLORS: dict[str, str] = {
    "critical": "#E41227",
    "error": "#FF4507",
    "warning": "#FFE608",
    "info": "#1661B8",
}
DEFAULT_COLOR = "#999999"
RESOLVED_COLOR = "#33CC33"

# Order matters: a group with several severities shows their emojis in this order.
SEVERITY_EMOJIS: dict[str, str] = {
    "critical": "💥",
    "error": "🚨",
    "warning": "⚠️",
    "info": "ℹ️",
}
STATUS_EMOJIS: dict[str, str] = {
    "resolved": "✅",
}
UNKNOWN_EMOJI = "🤨"
NBSP = "\u00a0"

DEFAULT_LOGS_DATASOURCE = "Loki Core"
DEFAULT_LOGS_MINUTES = 15
QUERY_WINDOW = timedelta(minutes=30)

_LABEL_PLACEHOLDER_RE = re.compile(r"\$([a-z0-9_]+)")
_FRACTION_RE = re.compile(r"\.(\d+)")


def _text(value: str) -> str:
    return html.escape(value, quote=False)


def _link(url: str, caption: str) -> str:
    return f'<a href="{html.escape(url)}">{caption}</a>'


def _encode_uri_component(value: str) -> str:
    return quote(value, safe="-_.!~*'()")


def explore_url(grafana_url: str, left: Mapping[str, object]) -> str:
    """Return a Grafana Explore URL for the given pane state."""
    state = json.dumps(left, separators=(",", ":"), ensure_ascii=False)
    return f"{grafana_url}/explore?orgId=1&left={_encode_uri_component(state)}"


def silence_url(alertmanager_url: str, labels: Mapping[str, str]) -> str:
    matchers = ",".join(f'{label}="{value}"' for label, value in labels.items())
    return f"{alertmanager_url}/#/silences/new?filter={{{_encode_uri_component(matchers)}}}"


def expand_label_placeholders(template: str, labels: Mapping[str, str]) -> str:
    """Replace ``$label`` placeholders with label values; unknown labels become empty."""
    return _LABEL_PLACEHOLDER_RE.sub(lambda match: labels.get(match.group(1), ""), template)


def _query_expression(url: str) -> str | None:
    values = parse_qs(urlsplit(url).query).get("g0.expr")
    return values[0] if values else None


def _parse_timestamp(value: str) -> datetime | None:
    if not value:
        return None
    # Alertmanager sends nanosecond precision; datetime only keeps microseconds.
    normalized = _FRACTION_RE.sub(lambda match: "." + match.group(1)[:6].ljust(6, "0"), value, count=1)
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        logger.debug("Ignoring unparseable timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _iso_millis(moment: datetime) -> str:
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _loki_query(labels: Mapping[str, str]) -> str | None:
    if all(key in labels for key in ("env", "cluster_id", "namespace", "pod")):
        return (
            f'{{env="{labels["env"]}",cluster_id="{labels["cluster_id"]}",'
            f'namespace="{labels["namespace"]}",pod="{labels["pod"]}"}}'
        )
    if all(key in labels for key in ("env", "cluster_id", "nodename", "exported_job", "level")):
        return (
            f'{{env="{labels["env"]}",cluster_id="{labels["cluster_id"]}",nodename="{labels["nodename"]}",'
            f'job="{labels["exported_job"]}",level="{labels["level"]}"}}'
        )
    return None


def _logs_url(alert: Alert, config: RelayConfig, now: datetime) -> str | None:
    logs_url: str | None = None
    if config.grafana_url and config.grafana_loki_datasource:
        expr = _loki_query(alert.labels)
        if expr is not None:
            logs_url = explore_url(
                config.grafana_url,
                {
                    "datasource": config.grafana_loki_datasource,
                    "queries": [{"refId": "A", "expr": expr, "queryType": "range"}],
                    "range": {"from": "now-15m", "to": "now"},
                },
            )

    if "logs_url" in alert.annotations:
        logs_url = alert.annotations["logs_url"]
    elif "logs_template" in alert.annotations and config.grafana_url:
        try:
            minutes = int(alert.annotations.get("logs_minutes", "")) or DEFAULT_LOGS_MINUTES
        except ValueError:
            minutes = DEFAULT_LOGS_MINUTES
        now_ms = int(now.timestamp() * 1000)
        logs_url = explore_url(
            config.grafana_url,
            {
                "datasource": alert.annotations.get("logs_datasource") or DEFAULT_LOGS_DATASOURCE,
                "queries": [
                    {
                        "refId": "A",
                        "queryType": "range",
                        "expr": expand_label_placeholders(alert.annotations["logs_template"], alert.labels),
                    }
                ],
                "range": {"from": str(now_ms - minutes * 60 * 1000), "to": str(now_ms)},
            },
        )
    return logs_url


def _is_hidden_annotation(name: str) -> bool:
    return name == "summary" or name.startswith("logs_")


def format_alert(alert: Alert, external_url: str, config: RelayConfig, now: datetime | None = None) -> str:
    """Format a single alert into an HTML message."""
    now = now or datetime.now(timezone.utc)
    parts: list[str] = ["<details>"]
    summary = _text(alert.summary)
    env = f" ({_text(alert.labels['env'])})" if alert.labels.get("env") else ""

    if alert.status == "firing":
        if config.mention_room:
            parts.extend(["@room", "<br>"])
        color = SEVERITY_COLORS.get(alert.severity, DEFAULT_COLOR)
        parts.append(f'<summary><strong><font color="{color}">FIRING: {summary}{env}</font></strong></summary>')
    elif alert.status == "resolved":
        parts.append(f'<summary><strong><font color="{RESOLVED_COLOR}">RESOLVED: {summary}{env}</font></strong></summary>')
    else:
        parts.append(f"<summary>{_text(alert.status.upper())}: {summary}{env}</summary>")

    parts.append("<br />\n")
    for label, value in alert.labels.items():
        parts.append(f"<b>{_text(label)}</b>: {_text(value)}<br>\n")
    parts.append("<br />\n")
    for annotation, value in alert.annotations.items():
        if not _is_hidden_annotation(annotation):
            parts.append(f"<b>{_text(annotation)}</b>: {_text(value)}<br>\n")
    parts.append("</details>")
    parts.append("<br />\n")

    url = external_url + alert.generator_url
    if config.grafana_url:
        url = explore_url(
            config.grafana_url,
            {
                "datasource": config.grafana_datasource,
                "queries": [{"refId": "A", "expr": _query_expression(url)}],
                "range": {"from": "now-1h", "to": "now"},
            },
        )
    parts.append(_link(url, "📈 Alert link"))

    if config.alertmanager_url:
        parts.append("| " + _link(silence_url(config.alertmanager_url, alert.labels), "🔇 Silence"))
    if "dashboard_url" in alert.annotations:
        dashboard = expand_label_placeholders(alert.annotations["dashboard_url"], alert.labels)
        parts.append("| " + _link(dashboard, "🚦 Dashboard"))
    if "runbook_url" in alert.annotations:
        parts.append("| " + _link(alert.annotations["runbook_url"], "🏃 Runbook"))
    logs_url = _logs_url(alert, config, now)
    if logs_url:
        parts.append("| " + _link(logs_url, "🗒️ Logs"))

    return " ".join(parts)


def _merged_summary(alerts: list[Alert]) -> str:
    summaries = [alert.summary for alert in alerts]
    try:
        return merge_strings(summaries)
    except MergeError:
        logger.exception("Could not merge %d alert summaries, using the first one", len(summaries))
        return summaries[0] if summaries else ""


def _group_emoji(status: str, severities: set[str]) -> str:
    if status in STATUS_EMOJIS:
        return STATUS_EMOJIS[status]
    emoji = "".join(value for severity, value in SEVERITY_EMOJIS.items() if severity in severities)
    return emoji or UNKNOWN_EMOJI


def _alert_details(alert: Alert, group: AlertGroup) -> list[str]:
    emoji = STATUS_EMOJIS.get(alert.status) or SEVERITY_EMOJIS.get(alert.severity) or UNKNOWN_EMOJI
    parts = [
        "<details>",
        "<summary><strong>",
        f"{emoji} {_text(alert.status.upper())}: {_text(alert.summary)}",
        "</strong></summary>",
    ]
    for label, value in alert.labels.items():
        if label in group.common_labels:
            continue
        parts.append(f" <br><b>{_text(label)}</b>: {_text(value)}")
    has_annotation = False
    for annotation, value in alert.annotations.items():
        if annotation in group.common_annotations or _is_hidden_annotation(annotation):
            continue
        if not has_annotation:
            parts.append("<br>")
            has_annotation = True
        parts.append(f" <br><b>{_text(annotation)}</b>: {_text(value)}")
    parts.append(f" <br>{NBSP}</details>")
    return parts


def _query_links(group: AlertGroup, config: RelayConfig, now: datetime) -> list[str]:
    generator_urls = list(dict.fromkeys(alert.generator_url for alert in group.alerts))
    links: list[str] = []
    for number, generator_url in enumerate(generator_urls, start=1):
        moments = [now]
        for alert in group.alerts:
            if alert.generator_url != generator_url:
                continue
            started = _parse_timestamp(alert.starts_at)
            if started is not None:
                moments.append(started)
        url = explore_url(
            config.grafana_url,
            {
                "datasource": config.grafana_datasource,
                "queries": [{"refId": "A", "expr": _query_expression(generator_url)}],
                "range": {
                    "from": _iso_millis(min(moments) - QUERY_WINDOW),
                    "to": _iso_millis(max(moments) + QUERY_WINDOW),
                },
            },
        )
        name = f"Alert query {number}" if len(generator_urls) > 1 else "Alert query"
        links.append(_link(url, f"📈 {name}"))
    return links


def format_alerts(group: AlertGroup, config: RelayConfig, now: datetime | None = None) -> str:
    """Format a whole webhook delivery into one message with a section per alert status."""
    now = now or datetime.now(timezone.utc)
    parts: list[str] = []
    for status in group.statuses():
        alerts = group.by_status(status)
        summary = _merged_summary(alerts)
        emoji = _group_emoji(status, {alert.severity for alert in alerts})

        parts.append("<details>")
        parts.append("<summary><strong>")
        parts.append(f"{emoji} {_text(status.upper())}: {_text(summary)}")
        parts.append("</strong></summary>")
        for label, value in group.common_labels.items():
            parts.append(f" <br><b>{_text(label)}</b>: {_text(value)}")
        if group.common_annotations:
            parts.append("<br>")
        for annotation, value in group.common_annotations.items():
            parts.append(f" <br><b>{_text(annotation)}</b>: {_text(value)}")

        if len(alerts) > 1:
            parts.append(f" <br>{NBSP}")
            for alert in alerts:
                parts.extend(_alert_details(alert, group))

        parts.append("<br></details>")

    links: list[str] = []
    if config.grafana_url and config.grafana_datasource:
        links.extend(_query_links(group, config, now))
    if config.alertmanager_url:
        links.append(_link(silence_url(config.alertmanager_url, group.common_labels), "🔇 Silence"))
    if links:
        parts.append(" | ".join(links))
    return "".join(parts)


def parse_alerts(payload: Mapping[str, object], config: RelayConfig, now: datetime | None = None) -> list[str]:
    """Turn a webhook payload into the list of messages to post."""
    group = parse_alert_group(payload)
    if not group.alerts:
        return []
    logger.debug("Received alert payload: %s", json.dumps(payload, default=str))
    if config.respect_groupby:
        return [format_alerts(group, config, now)]
    return [format_alert(alert, group.external_url, config, now) for alert in group.alerts]
