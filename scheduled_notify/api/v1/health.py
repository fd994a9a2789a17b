"""
Health endpoint for the scheduled notification service.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...core.db import get_db
from ...models.scheduled_rule import ScheduledNotificationRule


router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("")
def health(db: Session = Depends(get_db)) -> dict:
    total = db.query(func.count(ScheduledNotificationRule.id)).scalar() or 0
    enabled = (
        db.query(func.count(ScheduledNotificationRule.id))
        .filter(ScheduledNotificationRule.enabled.is_(True))
        .scalar()
        or 0
    )
    return {
        "status": "ok",
        "timestamp_utc": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "scheduled_rules": total,
        "scheduled_rules_enabled": enabled,
    }
