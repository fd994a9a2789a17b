"""
Pydantic schemas for scheduled notification rules, publishers and runs.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class NotificationPublisherOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    publisher_key: str
    template_mime_type: str
    default_publisher: bool = False
    publish_scheduled: bool = False


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    version: Optional[str] = None


class TeamOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class ScheduledRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    scope: str
    enabled: bool
    notify_on: List[str] = []
    cron_config: str
    publish_only_with_updates: bool
    include_suppressed: bool
    notify_children: bool
    log_successful_publish: bool
    last_execution_time: Optional[datetime] = None
    created_at: Optional[datetime] = None
    publisher: Optional[NotificationPublisherOut] = None
    projects: List[ProjectOut] = []
    teams: List[TeamOut] = []


class GroupResultOut(BaseModel):
    group: str
    status: str
    error: Optional[str] = None


class RunOutcomeOut(BaseModel):
    rule_id: str
    rule_name: str
    window_start: str
    disabled: bool = False
    watermark_advanced: bool
    new_watermark: Optional[str] = None
    results: List[GroupResultOut] = []
