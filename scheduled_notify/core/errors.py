"""
Error taxonomy and logging helpers for scheduled notification processing.

Group-scoped errors (configuration, publisher resolution, publishing,
unsupported groups) are caught by the rule executor and recorded against
the group. Run-scoped errors (aggregation, missing rule) abort the run.
"""

from __future__ import annotations

import logging


class ScheduledNotificationError(RuntimeError):
    """Base class for scheduled notification failures."""


class AggregationError(ScheduledNotificationError):
    """The event store could not be queried; the run is aborted."""


class RuleNotFoundError(ScheduledNotificationError):
    def __init__(self, rule_id: str) -> None:
        self.rule_id = rule_id
        super().__init__(f"Scheduled notification rule not found: {rule_id}")


class ConfigParseError(ScheduledNotificationError):
    """The rule's publisher configuration is not a well-formed JSON object."""


class PublisherResolutionError(ScheduledNotificationError):
    """The publisher descriptor could not be turned into a usable publisher."""


class PublishError(ScheduledNotificationError):
    """Delivery failed inside a publisher."""


class UnsupportedGroupError(ScheduledNotificationError):
    def __init__(self, group: str) -> None:
        self.group = group
        super().__init__(f"{group} is not a supported notification group for scheduled publishing")


def _format_extra(extra: dict | None) -> str:
    if not extra:
        return ""
    parts: list[str] = []
    for key, value in extra.items():
        if value is None:
            continue
        parts.append(f"{key}={value}")
    return f" {' '.join(parts)}" if parts else ""


def log_exception(logger: logging.Logger, msg: str, *, extra: dict | None = None, exc: Exception | None = None) -> None:
    """
    Log an exception with context. Uses logger.exception for stack traces.
    """
    suffix = _format_extra(extra)
    if exc is not None:
        logger.error(f"{msg}{suffix}: {exc}", exc_info=exc)
        return
    logger.exception(f"{msg}{suffix}")
