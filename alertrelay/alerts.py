"""Alertmanager webhook payload model."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import cast


@dataclass
class Alert:
    status: str
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    starts_at: str = ""
    generator_url: str = ""

    @property
    def summary(self) -> str:
        return self.annotations.get("summary") or self.labels.get("alertname") or ""

    @property
    def severity(self) -> str:
        return self.labels.get("severity", "")


@dataclass
class AlertGroup:
    receiver: str
    status: str
    alerts: list[Alert] = field(default_factory=list)
    common_labels: dict[str, str] = field(default_factory=dict)
    common_annotations: dict[str, str] = field(default_factory=dict)
    external_url: str = ""

    def statuses(self) -> list[str]:
        return sorted({alert.status for alert in self.alerts})

    def by_status(self, status: str) -> list[Alert]:
        return [alert for alert in self.alerts if alert.status == status]


def _str_value(value: object) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _str_dict(value: object) -> dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    result: dict[str, str] = {}
    for key, item in cast(Mapping[object, object], value).items():
        result[_str_value(key)] = _str_value(item)
    return result


def parse_alert(data: Mapping[str, object]) -> Alert:
    return Alert(
        status=_str_value(data.get("status")),
        labels=_str_dict(data.get("labels")),
        annotations=_str_dict(data.get("annotations")),
        starts_at=_str_value(data.get("startsAt")),
        generator_url=_str_value(data.get("generatorURL")),
    )


def parse_alert_group(payload: Mapping[str, object]) -> AlertGroup:
    """Build an AlertGroup from a decoded webhook body, ignoring malformed alert entries."""
    raw_alerts = payload.get("alerts")
    alerts: list[Alert] = []
    if isinstance(raw_alerts, list):
        for item in cast(list[object], raw_alerts):
            if isinstance(item, Mapping):
                alerts.append(parse_alert(cast(Mapping[str, object], item)))
    return AlertGroup(
        receiver=_str_value(payload.get("receiver")),
        status=_str_value(payload.get("status")),
        alerts=alerts,
        common_labels=_str_dict(payload.get("commonLabels")),
        common_annotations=_str_dict(payload.get("commonAnnotations")),
        external_url=_str_value(payload.get("externalURL")),
    )
