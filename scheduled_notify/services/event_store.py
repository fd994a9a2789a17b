"""
Read-only event store used by scheduled notifications.

The store answers two questions per project: which events happened
strictly after a point in time, and how many non-suppressed events the
project carries overall, per category. Rows are converted to immutable
`EventRecord` values so nothing outlives the session.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.errors import AggregationError
from ..models.finding import Finding
from ..models.policy_violation import PolicyViolation
from .notification_types import (
    NEW_VULNERABILITY,
    POLICY_VIOLATION,
    as_utc,
    date_or_unknown,
    value_or_empty,
)


logger = logging.getLogger("event_store")


@dataclass(frozen=True)
class ProjectRef:
    id: str
    name: str
    version: Optional[str] = None

    def to_dict(self) -> dict:
        return {"uuid": self.id, "name": self.name, "version": value_or_empty(self.version)}


@dataclass(frozen=True)
class EventRecord:
    id: int
    project_id: str
    component_name: str
    component_version: Optional[str]
    # Severity for vulnerabilities, violation type for policy violations
    category: str
    # Vulnerability id or policy name
    identifier: str
    occurred_at: datetime.datetime
    suppressed: bool = False
    title: Optional[str] = None
    description: Optional[str] = None
    attributes: dict = field(default_factory=dict, compare=False, hash=False)

    @property
    def component_key(self) -> tuple[str, str, str]:
        return (self.project_id, self.component_name, value_or_empty(self.component_version))

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {
            "id": self.id,
            "component": {
                "name": self.component_name,
                "version": value_or_empty(self.component_version),
            },
            "category": self.category,
            "identifier": self.identifier,
            "occurredAt": date_or_unknown(self.occurred_at),
            "suppressed": self.suppressed,
            "title": value_or_empty(self.title),
            "description": value_or_empty(self.description),
        }
        payload.update(self.attributes)
        return payload


class EventStore:
    def query_events_since(
        self,
        project: ProjectRef,
        group: str,
        include_suppressed: bool,
        since: datetime.datetime,
    ) -> list[EventRecord]:
        raise NotImplementedError

    def count_events_by_category(self, project: ProjectRef, group: str) -> dict[str, int]:
        raise NotImplementedError


def _finding_to_record(row: Finding) -> EventRecord:
    return EventRecord(
        id=row.id,
        project_id=row.project_id,
        component_name=row.component_name,
        component_version=row.component_version,
        category=(row.severity or "UNASSIGNED").upper(),
        identifier=row.vuln_id,
        occurred_at=as_utc(row.attributed_on),
        suppressed=bool(row.suppressed),
        title=row.title,
        description=row.description,
        attributes={
            "source": value_or_empty(row.source),
            "cvssScore": row.cvss_score,
            "published": date_or_unknown(row.published_at),
            "analysisState": value_or_empty(row.analysis_state),
        },
    )


def _violation_to_record(row: PolicyViolation) -> EventRecord:
    return EventRecord(
        id=row.id,
        project_id=row.project_id,
        component_name=row.component_name,
        component_version=row.component_version,
        category=(row.violation_type or "UNASSIGNED").upper(),
        identifier=row.policy_name,
        occurred_at=as_utc(row.timestamp),
        suppressed=bool(row.suppressed),
        title=row.condition,
        attributes={"violationState": value_or_empty(row.violation_state)},
    )


class SqlEventStore(EventStore):
    """Event store backed by the findings and policy_violations tables."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def query_events_since(
        self,
        project: ProjectRef,
        group: str,
        include_suppressed: bool,
        since: datetime.datetime,
    ) -> list[EventRecord]:
        since = as_utc(since)
        try:
            if group == NEW_VULNERABILITY:
                query = self.db.query(Finding).filter(
                    Finding.project_id == project.id,
                    Finding.attributed_on > since,
                )
                if not include_suppressed:
                    query = query.filter(Finding.suppressed.is_(False))
                rows = query.order_by(Finding.attributed_on.asc(), Finding.id.asc()).all()
                logger.debug("Fetched %s finding(s) project=%s since=%s", len(rows), project.id, since.isoformat())
                return [_finding_to_record(row) for row in rows]
            if group == POLICY_VIOLATION:
                query = self.db.query(PolicyViolation).filter(
                    PolicyViolation.project_id == project.id,
                    PolicyViolation.timestamp > since,
                )
                if not include_suppressed:
                    query = query.filter(PolicyViolation.suppressed.is_(False))
                rows = query.order_by(PolicyViolation.timestamp.asc(), PolicyViolation.id.asc()).all()
                logger.debug("Fetched %s violation(s) project=%s since=%s", len(rows), project.id, since.isoformat())
                return [_violation_to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise AggregationError(f"Event query failed project={project.id} group={group}: {exc}") from exc
        raise ValueError(f"No event source for group {group}")

    def count_events_by_category(self, project: ProjectRef, group: str) -> dict[str, int]:
        try:
            if group == NEW_VULNERABILITY:
                rows = (
                    self.db.query(Finding.severity, func.count(Finding.id))
                    .filter(Finding.project_id == project.id, Finding.suppressed.is_(False))
                    .group_by(Finding.severity)
                    .all()
                )
            elif group == POLICY_VIOLATION:
                rows = (
                    self.db.query(PolicyViolation.violation_type, func.count(PolicyViolation.id))
                    .filter(PolicyViolation.project_id == project.id, PolicyViolation.suppressed.is_(False))
                    .group_by(PolicyViolation.violation_type)
                    .all()
                )
            else:
                raise ValueError(f"No event source for group {group}")
        except SQLAlchemyError as exc:
            raise AggregationError(f"Event count failed project={project.id} group={group}: {exc}") from exc
        counts: dict[str, int] = {}
        for category, count in rows:
            key = (category or "UNASSIGNED").upper()
            counts[key] = counts.get(key, 0) + int(count or 0)
        return counts
