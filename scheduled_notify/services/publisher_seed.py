"""
Auto-seed the default notification publishers.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ..models.notification_publisher import NotificationPublisher
from .publisher_registry import CONSOLE, EMAIL, WEBHOOK


CONSOLE_TEMPLATE = """--------------------------------------------------------------------------------
Notification
  -- timestamp: $timestamp
  -- level:     $level
  -- scope:     $scope
  -- group:     $group
  -- title:     $title
  -- content:   $content
--------------------------------------------------------------------------------
$subject_json
"""

WEBHOOK_TEMPLATE = """{
  "notification": {
    "level": "$level",
    "scope": "$scope",
    "group": "$group",
    "timestamp": "$timestamp",
    "title": "$title",
    "content": "$content",
    "subject": $subject_json
  }
}
"""

EMAIL_TEMPLATE = """$title

$content

Level:     $level
Scope:     $scope
Group:     $group
Timestamp: $timestamp

$subject_json
"""

DEFAULT_PUBLISHERS = [
    {
        "name": "Console",
        "description": "Displays notifications on the system console",
        "publisher_key": CONSOLE,
        "template": CONSOLE_TEMPLATE,
        "template_mime_type": "text/plain",
    },
    {
        "name": "Outbound Webhook",
        "description": "Publishes notifications to a configurable endpoint",
        "publisher_key": WEBHOOK,
        "template": WEBHOOK_TEMPLATE,
        "template_mime_type": "application/json",
    },
    {
        "name": "Email",
        "description": "Sends notifications to an email address",
        "publisher_key": EMAIL,
        "template": EMAIL_TEMPLATE,
        "template_mime_type": "text/plain",
    },
]


def seed_default_publishers(db: Session) -> int:
    logger = logging.getLogger("publisher_seed")
    created = 0
    for spec in DEFAULT_PUBLISHERS:
        existing = db.query(NotificationPublisher).filter(NotificationPublisher.name == spec["name"]).first()
        if existing is not None:
            continue
        db.add(NotificationPublisher(default_publisher=True, publish_scheduled=True, **spec))
        created += 1
    if created:
        db.commit()
        logger.info("Seeded %s default notification publisher(s)", created)
    return created
