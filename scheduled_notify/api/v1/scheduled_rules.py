"""
API endpoints for inspecting and running scheduled notification rules.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...core.db import SessionLocal, get_db
from ...core.errors import AggregationError, RuleNotFoundError
from ...models.scheduled_rule import ScheduledNotificationRule
from ...schemas.scheduled import RunOutcomeOut, ScheduledRuleOut
from ...services.rule_store import list_scheduled_rules
from ...services.scheduled_notifications import RuleExecutor


router = APIRouter(prefix="/api/v1/scheduled-rules", tags=["scheduled-rules"])


def get_rule_executor() -> RuleExecutor:
    return RuleExecutor(SessionLocal)


@router.get("", response_model=List[ScheduledRuleOut])
def list_rules(
    enabled_only: bool = Query(False),
    db: Session = Depends(get_db),
) -> list[ScheduledRuleOut]:
    return [ScheduledRuleOut.model_validate(rule) for rule in list_scheduled_rules(db, enabled_only=enabled_only)]


@router.get("/{rule_id}", response_model=ScheduledRuleOut)
def get_rule(rule_id: str, db: Session = Depends(get_db)) -> ScheduledRuleOut:
    rule = db.get(ScheduledNotificationRule, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Scheduled notification rule not found")
    return ScheduledRuleOut.model_validate(rule)


@router.post("/{rule_id}/execute", response_model=RunOutcomeOut)
def execute_rule(rule_id: str, executor: RuleExecutor = Depends(get_rule_executor)) -> dict:
    try:
        outcome = executor.execute(rule_id)
    except RuleNotFoundError:
        raise HTTPException(status_code=404, detail="Scheduled notification rule not found")
    except AggregationError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return outcome.to_dict()
