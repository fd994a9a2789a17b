"""
Scheduled notification rules.

A rule watches a set of notification groups for a set of projects and is
executed on its cron schedule by an external scheduler. The executor only
ever writes back `last_execution_time`, the exclusive lower bound of the
next run's event window.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, Boolean, DateTime, JSON, ForeignKey, Table
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base
from .notification_publisher import NotificationPublisher
from .project import Project
from .team import Team


DEFAULT_CRON_EXPRESSION = "0 12 * * *"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


scheduled_rule_projects = Table(
    "scheduled_rule_projects",
    Base.metadata,
    Column("rule_id", String(36), ForeignKey("scheduled_notification_rules.id", ondelete="CASCADE"), primary_key=True),
    Column("project_id", String(36), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
)

scheduled_rule_teams = Table(
    "scheduled_rule_teams",
    Base.metadata,
    Column("rule_id", String(36), ForeignKey("scheduled_notification_rules.id", ondelete="CASCADE"), primary_key=True),
    Column("team_id", String(36), ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True),
)


class ScheduledNotificationRule(Base):
    __tablename__ = "scheduled_notification_rules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    scope: Mapped[str] = mapped_column(String(16), default="PORTFOLIO")  # PORTFOLIO | SYSTEM
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    # Ordered list of notification group names, e.g. ["NEW_VULNERABILITY", "POLICY_VIOLATION"]
    notify_on: Mapped[list] = mapped_column(JSON, default=list)
    cron_config: Mapped[str] = mapped_column(String(64), default=DEFAULT_CRON_EXPRESSION)
    publish_only_with_updates: Mapped[bool] = mapped_column(Boolean, default=False)
    include_suppressed: Mapped[bool] = mapped_column(Boolean, default=True)
    notify_children: Mapped[bool] = mapped_column(Boolean, default=True)
    log_successful_publish: Mapped[bool] = mapped_column(Boolean, default=False)
    publisher_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("notification_publishers.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    # Raw JSON document; parsed per run so malformed values surface as group failures
    publisher_config: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_execution_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    publisher: Mapped[NotificationPublisher | None] = relationship("NotificationPublisher")
    projects: Mapped[list[Project]] = relationship("Project", secondary=scheduled_rule_projects, order_by="Project.name")
    teams: Mapped[list[Team]] = relationship("Team", secondary=scheduled_rule_teams, order_by="Team.name")
