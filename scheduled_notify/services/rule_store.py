"""
Persistence helpers for scheduled notification rules and publishers.
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ..core.errors import RuleNotFoundError
from ..models.notification_publisher import NotificationPublisher
from ..models.project import Project
from ..models.scheduled_rule import DEFAULT_CRON_EXPRESSION, ScheduledNotificationRule
from ..models.team import Team
from .event_store import ProjectRef
from .notification_types import SCOPE_PORTFOLIO, as_utc
from .publishers import DeliveryTarget


logger = logging.getLogger("rule_store")

TRIGGER_ALL = "ALL"
TRIGGER_SCHEDULE = "SCHEDULE"
TRIGGER_EVENT = "EVENT"


def load_rule_by_id(db: Session, rule_id: str) -> ScheduledNotificationRule:
    rule = db.get(ScheduledNotificationRule, str(rule_id))
    if rule is None:
        raise RuleNotFoundError(str(rule_id))
    return rule


def advance_watermark(db: Session, rule_id: str, new_timestamp: datetime.datetime) -> bool:
    """
    Move the rule's last execution time forward to ``new_timestamp``.

    Returns False (and leaves the row untouched) when the stored value is
    already at or beyond ``new_timestamp``.
    """
    rule = load_rule_by_id(db, rule_id)
    new_timestamp = as_utc(new_timestamp)
    current = rule.last_execution_time
    if current is not None and as_utc(current) >= new_timestamp:
        logger.warning(
            "Refusing to move watermark backward rule_id=%s current=%s requested=%s",
            rule_id,
            as_utc(current).isoformat(),
            new_timestamp.isoformat(),
        )
        return False
    rule.last_execution_time = new_timestamp
    db.add(rule)
    db.commit()
    return True


def create_scheduled_rule(
    db: Session,
    *,
    name: str,
    publisher: Optional[NotificationPublisher],
    scope: str = SCOPE_PORTFOLIO,
    notify_on: Iterable[str] = (),
    publish_only_with_updates: bool = False,
    include_suppressed: bool = True,
    notify_children: bool = True,
    publisher_config: Optional[dict | str] = None,
    cron_config: str = DEFAULT_CRON_EXPRESSION,
    projects: Iterable[Project] = (),
    teams: Iterable[Team] = (),
    last_execution_time: Optional[datetime.datetime] = None,
) -> ScheduledNotificationRule:
    if isinstance(publisher_config, dict):
        publisher_config = json.dumps(publisher_config)
    rule = ScheduledNotificationRule(
        name=name,
        scope=scope,
        enabled=True,
        notify_on=list(notify_on),
        cron_config=cron_config,
        publish_only_with_updates=publish_only_with_updates,
        include_suppressed=include_suppressed,
        notify_children=notify_children,
        log_successful_publish=False,
        publisher=publisher,
        publisher_config=publisher_config,
        last_execution_time=as_utc(last_execution_time or datetime.datetime.now(datetime.timezone.utc)),
    )
    rule.projects = list(projects)
    rule.teams = list(teams)
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


def list_scheduled_rules(db: Session, *, enabled_only: bool = False) -> list[ScheduledNotificationRule]:
    query = db.query(ScheduledNotificationRule)
    if enabled_only:
        query = query.filter(ScheduledNotificationRule.enabled.is_(True))
    return query.order_by(ScheduledNotificationRule.name.asc()).all()


def list_publishers(db: Session, trigger: str = TRIGGER_ALL) -> list[NotificationPublisher]:
    query = db.query(NotificationPublisher)
    trigger = (trigger or TRIGGER_ALL).upper()
    if trigger == TRIGGER_SCHEDULE:
        query = query.filter(NotificationPublisher.publish_scheduled.is_(True))
    elif trigger == TRIGGER_EVENT:
        query = query.filter(NotificationPublisher.publish_scheduled.is_not(True))
    return query.order_by(NotificationPublisher.name.asc()).all()


def get_publisher_by_name(db: Session, name: str) -> Optional[NotificationPublisher]:
    return db.query(NotificationPublisher).filter(NotificationPublisher.name == name).first()


def _descendants(db: Session, root_ids: list[str]) -> list[Project]:
    found: list[Project] = []
    seen = set(root_ids)
    frontier = list(root_ids)
    while frontier:
        children = (
            db.query(Project)
            .filter(Project.parent_id.in_(frontier), Project.active.is_(True))
            .order_by(Project.name.asc(), Project.id.asc())
            .all()
        )
        frontier = []
        for child in children:
            if child.id in seen:
                continue
            seen.add(child.id)
            found.append(child)
            frontier.append(child.id)
    return found


def resolve_rule_projects(db: Session, rule: ScheduledNotificationRule) -> list[ProjectRef]:
    """
    Projects covered by a rule, in a stable order.

    Assigned projects come first (plus their descendants when the rule
    notifies children); a rule without assigned projects covers every
    active project.
    """
    assigned = [p for p in rule.projects if p.active]
    if not rule.projects:
        projects = (
            db.query(Project)
            .filter(Project.active.is_(True))
            .order_by(Project.name.asc(), Project.id.asc())
            .all()
        )
    else:
        projects = list(assigned)
        if rule.notify_children and assigned:
            known = {p.id for p in projects}
            for child in _descendants(db, [p.id for p in assigned]):
                if child.id not in known:
                    known.add(child.id)
                    projects.append(child)
    return [ProjectRef(id=p.id, name=p.name, version=p.version) for p in projects]


def delivery_targets(rule: ScheduledNotificationRule) -> list[DeliveryTarget]:
    targets: list[DeliveryTarget] = []
    for team in rule.teams or []:
        emails = tuple(m.email.strip() for m in team.members if m.email and m.email.strip())
        targets.append(DeliveryTarget(name=team.name, destinations=emails))
    return targets
