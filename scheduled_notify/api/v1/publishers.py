"""
API endpoints for notification publisher descriptors.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...core.db import get_db
from ...schemas.scheduled import NotificationPublisherOut
from ...services.rule_store import TRIGGER_ALL, TRIGGER_EVENT, TRIGGER_SCHEDULE, list_publishers


router = APIRouter(prefix="/api/v1/notification-publishers", tags=["notification-publishers"])


@router.get("", response_model=List[NotificationPublisherOut])
def get_publishers(
    trigger: str = Query(TRIGGER_ALL),
    db: Session = Depends(get_db),
) -> list[NotificationPublisherOut]:
    if trigger.upper() not in {TRIGGER_ALL, TRIGGER_SCHEDULE, TRIGGER_EVENT}:
        raise HTTPException(status_code=400, detail=f"Unsupported trigger: {trigger}")
    return [NotificationPublisherOut.model_validate(p) for p in list_publishers(db, trigger)]
