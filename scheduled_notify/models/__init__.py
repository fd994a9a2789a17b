"""
SQLAlchemy model base class for the scheduled notification service.

This package defines ORM models for projects, findings, policy violations,
teams, notification publishers and scheduled notification rules. All
models should inherit from the declarative `Base` defined here.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass


from .project import Project  # noqa: E402,F401
from .team import Team, TeamMember  # noqa: E402,F401
from .finding import Finding  # noqa: E402,F401
from .policy_violation import PolicyViolation  # noqa: E402,F401
from .notification_publisher import NotificationPublisher  # noqa: E402,F401
from .scheduled_rule import ScheduledNotificationRule  # noqa: E402,F401

__all__ = [
    "Base",

    # Portfolio
    "Project",
    "Team",
    "TeamMember",

    # Events
    "Finding",
    "PolicyViolation",

    # Notifications
    "NotificationPublisher",
    "ScheduledNotificationRule",
]
