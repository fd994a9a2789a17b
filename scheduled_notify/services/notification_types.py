"""
Notification vocabulary, outbound message and publish context.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any, Optional


# Notification groups
NEW_VULNERABILITY = "NEW_VULNERABILITY"
POLICY_VIOLATION = "POLICY_VIOLATION"
# Only these groups can be aggregated over a time window
SCHEDULED_GROUPS = (NEW_VULNERABILITY, POLICY_VIOLATION)

SCOPE_PORTFOLIO = "PORTFOLIO"

LEVEL_INFORMATIONAL = "INFORMATIONAL"

SEVERITIES = ("CRITICAL", "HIGH", "MEDIUM", "LOW", "INFO", "UNASSIGNED")
VIOLATION_TYPES = ("LICENSE", "SECURITY", "OPERATIONAL")


def as_utc(ts: datetime.datetime) -> datetime.datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=datetime.timezone.utc)
    return ts.astimezone(datetime.timezone.utc)


def value_or_empty(value: Any) -> str:
    return "" if value is None else str(value)


def date_or_unknown(ts: Optional[datetime.datetime]) -> str:
    if ts is None:
        return "Unknown"
    return as_utc(ts).isoformat().replace("+00:00", "Z")


@dataclass
class Notification:
    """Outbound message handed to a publisher."""

    scope: str
    group: str
    level: str
    title: str
    content: str
    timestamp: datetime.datetime
    subject: Any = None

    def to_dict(self) -> dict:
        subject = self.subject.to_dict() if hasattr(self.subject, "to_dict") else self.subject
        return {
            "scope": self.scope,
            "group": self.group,
            "level": self.level,
            "title": self.title,
            "content": self.content,
            "timestamp": date_or_unknown(self.timestamp),
            "subject": subject,
        }


@dataclass(frozen=True)
class PublishContext:
    """Identifies a notification and the rule that triggered it, for logging."""

    group: str
    level: str
    scope: str
    timestamp: str
    rule_id: Optional[str] = None
    rule_name: Optional[str] = None

    @classmethod
    def from_notification(cls, notification: Notification) -> "PublishContext":
        return cls(
            group=notification.group,
            level=notification.level,
            scope=notification.scope,
            timestamp=date_or_unknown(notification.timestamp),
        )

    def with_rule(self, rule) -> "PublishContext":
        return PublishContext(
            group=self.group,
            level=self.level,
            scope=self.scope,
            timestamp=self.timestamp,
            rule_id=str(rule.id),
            rule_name=rule.name,
        )

    def __str__(self) -> str:
        return (
            f"group={self.group} level={self.level} scope={self.scope} "
            f"timestamp={self.timestamp} rule_id={self.rule_id} rule_name={self.rule_name!r}"
        )
