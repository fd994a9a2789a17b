"""
Execution of scheduled notification rules.

One execution of a rule aggregates every configured notification group
over the window that starts at the rule's last execution time, publishes
one notification per group and then decides whether to move the rule's
watermark forward.

Per-group failures (unsupported group, malformed publisher configuration,
publisher resolution, delivery) are recorded and never stop the remaining
groups. The watermark advances when no group failed, or when at least one
group was delivered; otherwise it stays put so the next tick retries the
same window. Anything else (missing rule, unreachable event store) aborts
the run without touching the watermark.

At most one execution per rule may be in flight; the caller (scheduler)
is responsible for that.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import (
    ConfigParseError,
    PublishError,
    PublisherResolutionError,
    UnsupportedGroupError,
    log_exception,
)
from ..models.scheduled_rule import ScheduledNotificationRule
from .event_aggregator import EventAggregator, ScheduledEventsIdentified
from .event_store import EventStore, SqlEventStore
from .notification_types import (
    LEVEL_INFORMATIONAL,
    NEW_VULNERABILITY,
    POLICY_VIOLATION,
    SCHEDULED_GROUPS,
    Notification,
    PublishContext,
    as_utc,
    date_or_unknown,
)
from .publisher_registry import (
    PublisherDispatcher,
    PublisherRegistry,
    default_registry,
    merge_publisher_config,
    parse_publisher_config,
)
from .rule_store import advance_watermark, delivery_targets, load_rule_by_id, resolve_rule_projects


STATUS_PUBLISHED = "PUBLISHED"
STATUS_SKIPPED = "SKIPPED"
STATUS_FAILED = "FAILED"
STATUS_UNSUPPORTED = "UNSUPPORTED"


@dataclass(frozen=True)
class GroupResult:
    group: str
    status: str
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.status in (STATUS_FAILED, STATUS_UNSUPPORTED)

    @property
    def is_success(self) -> bool:
        return self.status == STATUS_PUBLISHED


def should_advance_watermark(results: Iterable[GroupResult]) -> bool:
    results = list(results)
    any_error = any(r.is_error for r in results)
    any_success = any(r.is_success for r in results)
    return not any_error or any_success


@dataclass
class RunOutcome:
    rule_id: str
    rule_name: str
    window_start: Optional[datetime.datetime]
    results: list[GroupResult] = field(default_factory=list)
    watermark_advanced: bool = False
    new_watermark: Optional[datetime.datetime] = None
    disabled: bool = False

    @property
    def any_error(self) -> bool:
        return any(r.is_error for r in self.results)

    @property
    def any_success(self) -> bool:
        return any(r.is_success for r in self.results)

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "window_start": date_or_unknown(self.window_start),
            "disabled": self.disabled,
            "watermark_advanced": self.watermark_advanced,
            "new_watermark": date_or_unknown(self.new_watermark) if self.new_watermark else None,
            "results": [{"group": r.group, "status": r.status, "error": r.error} for r in self.results],
        }


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _display_zone() -> Optional[ZoneInfo]:
    name = (settings.scheduled_display_timezone or "").strip()
    return ZoneInfo(name) if name else None


def format_window_start(window_start: datetime.datetime, tz: Optional[datetime.tzinfo] = None) -> str:
    """ISO local date-time of the window start in ``tz`` (local zone when None)."""
    ts = as_utc(window_start)
    local = ts.astimezone(tz) if tz is not None else ts.astimezone()
    return local.strftime("%Y-%m-%dT%H:%M:%S")


def build_notification(
    rule: ScheduledNotificationRule,
    group: str,
    events: ScheduledEventsIdentified,
    *,
    now: datetime.datetime,
    tz: Optional[datetime.tzinfo] = None,
) -> Notification:
    overview = events.overview
    since = format_window_start(events.window_start, tz)
    if group == NEW_VULNERABILITY:
        title = (
            f"{overview.new_count} new Vulnerability(s) in {overview.affected_component_count} component(s) "
            f"in Scheduled Rule '{rule.name}'"
        )
        content = f"Find below a summary of new vulnerabilities since {since} in Scheduled Notification Rule '{rule.name}'."
    elif group == POLICY_VIOLATION:
        title = (
            f"{overview.new_count} new Policy Violation(s) in {overview.affected_component_count} component(s) "
            f"in Scheduled Rule '{rule.name}'"
        )
        content = f"Find below a summary of new policy violations since {since} in Scheduled Notification Rule '{rule.name}'."
    else:
        raise UnsupportedGroupError(group)
    return Notification(
        scope=rule.scope,
        group=group,
        level=LEVEL_INFORMATIONAL,
        title=title,
        content=content,
        timestamp=now,
        subject=events,
    )


class RuleExecutor:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        registry: Optional[PublisherRegistry] = None,
        *,
        logger: Optional[logging.Logger] = None,
        clock: Optional[Callable[[], datetime.datetime]] = None,
        display_tz: Optional[datetime.tzinfo] = None,
        event_store_factory: Optional[Callable[[Session], EventStore]] = None,
    ) -> None:
        self.session_factory = session_factory
        self.logger = logger or logging.getLogger("scheduled_notifications")
        self.dispatcher = PublisherDispatcher(registry or default_registry(), logger=self.logger)
        self.clock = clock or _utcnow
        self.display_tz = display_tz if display_tz is not None else _display_zone()
        self.event_store_factory = event_store_factory or SqlEventStore

    def execute(self, rule_id: str) -> RunOutcome:
        with self.session_factory() as db:
            rule = load_rule_by_id(db, rule_id)
            if not rule.enabled:
                self.logger.info("Scheduled notification rule %s is disabled; nothing to do", rule.id)
                return RunOutcome(rule_id=rule.id, rule_name=rule.name, window_start=None, disabled=True)

            self.logger.info("Processing notification publishing for scheduled notification rule %s", rule.id)
            # Shared by every group of this run
            window_start = as_utc(rule.last_execution_time or rule.created_at or self.clock())
            projects = resolve_rule_projects(db, rule)
            targets = delivery_targets(rule)
            aggregator = EventAggregator(self.event_store_factory(db))

            outcome = RunOutcome(rule_id=rule.id, rule_name=rule.name, window_start=window_start)
            for group in list(rule.notify_on or []):
                result = self._process_group(rule, str(group), window_start, projects, targets, aggregator)
                outcome.results.append(result)

            if should_advance_watermark(outcome.results):
                now = self.clock()
                outcome.watermark_advanced = advance_watermark(db, rule.id, now)
                outcome.new_watermark = as_utc(now) if outcome.watermark_advanced else None
                self.logger.info(
                    "Successfully processed notification publishing for scheduled notification rule %s", rule.id
                )
            else:
                self.logger.error(
                    "Errors occurred while processing notification publishing for scheduled notification rule %s; "
                    "last execution time left at %s",
                    rule.id,
                    window_start.isoformat(),
                )
            return outcome

    def _process_group(
        self,
        rule: ScheduledNotificationRule,
        group: str,
        window_start: datetime.datetime,
        projects,
        targets,
        aggregator: EventAggregator,
    ) -> GroupResult:
        if group not in SCHEDULED_GROUPS:
            err = UnsupportedGroupError(group)
            self.logger.warning("%s (rule_id=%s rule_name=%r)", err, rule.id, rule.name)
            return GroupResult(group=group, status=STATUS_UNSUPPORTED, error=str(err))

        events = aggregator.aggregate(projects, window_start, group, include_suppressed=bool(rule.include_suppressed))
        if events.overview.new_count == 0 and rule.publish_only_with_updates:
            self.logger.info("No new events for group %s in rule %s; skipping publish", group, rule.id)
            return GroupResult(group=group, status=STATUS_SKIPPED)

        notification = build_notification(rule, group, events, now=self.clock(), tz=self.display_tz)
        ctx = PublishContext.from_notification(notification).with_rule(rule)

        try:
            rule_config = parse_publisher_config(rule.publisher_config)
        except ConfigParseError as exc:
            log_exception(
                self.logger,
                "An error occurred while preparing the configuration for the notification publisher",
                extra={"context": f"({ctx})"},
                exc=exc,
            )
            return GroupResult(group=group, status=STATUS_FAILED, error=str(exc))

        try:
            config = merge_publisher_config(rule.publisher, rule_config, logger=self.logger) if rule.publisher else rule_config
            self.dispatcher.dispatch(ctx, notification, rule.publisher, config, targets)
        except PublisherResolutionError as exc:
            log_exception(
                self.logger,
                "An error occurred while instantiating a notification publisher",
                extra={"context": f"({ctx})"},
                exc=exc,
            )
            return GroupResult(group=group, status=STATUS_FAILED, error=str(exc))
        except PublishError as exc:
            log_exception(
                self.logger,
                "An error occurred during the publication of the notification",
                extra={"context": f"({ctx})"},
                exc=exc,
            )
            return GroupResult(group=group, status=STATUS_FAILED, error=str(exc))

        if rule.log_successful_publish:
            self.logger.info("Published %s (%s)", notification.title, ctx)
        return GroupResult(group=group, status=STATUS_PUBLISHED)


def run_scheduled_rule(rule_id: str, executor: Optional[RuleExecutor] = None) -> None:
    """
    Scheduler-facing entry point: run one rule, report only through logs.
    """
    if executor is None:
        from ..core.db import SessionLocal

        executor = RuleExecutor(SessionLocal)
    try:
        executor.execute(rule_id)
    except Exception as exc:
        log_exception(
            executor.logger,
            "An error occurred while processing scheduled notification rule",
            extra={"rule_id": rule_id},
            exc=exc,
        )
