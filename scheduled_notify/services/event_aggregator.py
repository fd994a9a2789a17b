"""
Aggregation of a rule's event window into overview, summary and details.

Given the projects covered by a rule and the rule's watermark, the
aggregator asks the event store for every event strictly after the
watermark and produces three layered views:

* ``Overview``: window-wide counts (new events, affected projects and
  components, suppressed events, new events per category).
* ``SummaryInfo`` per project: new, cumulative and suppressed-new counts
  per category (severity for vulnerabilities, violation type for policy
  violations).
* ``details`` per project: the event records of the window in store order.

Suppressed events never count as new. They show up in the suppressed
bucket only when the rule includes suppressed events.

The aggregator does not write to the store. Store failures surface as
``AggregationError`` and are not caught here.
"""

from __future__ import annotations

import datetime
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from .event_store import EventRecord, EventStore, ProjectRef
from .notification_types import (
    NEW_VULNERABILITY,
    POLICY_VIOLATION,
    SEVERITIES,
    VIOLATION_TYPES,
    as_utc,
    date_or_unknown,
)


def _category_order(group: str) -> tuple[str, ...]:
    if group == NEW_VULNERABILITY:
        return SEVERITIES
    if group == POLICY_VIOLATION:
        return VIOLATION_TYPES
    return ()


def _ordered_counts(counts: dict[str, int], order: tuple[str, ...]) -> dict[str, int]:
    result = {key: counts[key] for key in order if counts.get(key)}
    for key in sorted(k for k in counts if k not in order and counts[k]):
        result[key] = counts[key]
    return result


@dataclass
class Overview:
    new_count: int = 0
    affected_project_count: int = 0
    affected_component_count: int = 0
    suppressed_new_count: int = 0
    new_by_category: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "newCount": self.new_count,
            "affectedProjectsCount": self.affected_project_count,
            "affectedComponentsCount": self.affected_component_count,
            "suppressedNewCount": self.suppressed_new_count,
            "newByCategory": dict(self.new_by_category),
        }


@dataclass
class SummaryInfo:
    new_by_category: dict[str, int] = field(default_factory=dict)
    total_by_category: dict[str, int] = field(default_factory=dict)
    suppressed_new_by_category: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "newByCategory": dict(self.new_by_category),
            "totalByCategory": dict(self.total_by_category),
            "suppressedNewByCategory": dict(self.suppressed_new_by_category),
        }


@dataclass
class ScheduledEventsIdentified:
    """Structured payload of one scheduled notification."""

    group: str
    window_start: datetime.datetime
    overview: Overview
    summary: dict[ProjectRef, SummaryInfo] = field(default_factory=dict)
    details: dict[ProjectRef, list[EventRecord]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "group": self.group,
            "since": date_or_unknown(self.window_start),
            "overview": self.overview.to_dict(),
            "summary": [
                {"project": project.to_dict(), **info.to_dict()}
                for project, info in self.summary.items()
            ],
            "details": [
                {"project": project.to_dict(), "events": [record.to_dict() for record in records]}
                for project, records in self.details.items()
            ],
        }


class EventAggregator:
    def __init__(self, store: EventStore) -> None:
        self.store = store

    def aggregate(
        self,
        projects: Iterable[ProjectRef],
        window_start: datetime.datetime,
        group: str,
        *,
        include_suppressed: bool = True,
    ) -> ScheduledEventsIdentified:
        since = as_utc(window_start)
        order = _category_order(group)

        windowed: dict[ProjectRef, list[EventRecord]] = {}
        for project in projects:
            if project in windowed:
                continue
            windowed[project] = self.store.query_events_since(project, group, include_suppressed, since)

        overview = Overview()
        summary: dict[ProjectRef, SummaryInfo] = {}
        details: dict[ProjectRef, list[EventRecord]] = {}
        new_categories: Counter[str] = Counter()
        components: set[tuple[str, str, str]] = set()

        for project, records in windowed.items():
            if not records:
                continue
            new_records = [r for r in records if not r.suppressed]
            suppressed_records = [r for r in records if r.suppressed] if include_suppressed else []

            if new_records:
                overview.affected_project_count += 1
            overview.new_count += len(new_records)
            overview.suppressed_new_count += len(suppressed_records)
            project_new = Counter(r.category for r in new_records)
            new_categories.update(project_new)
            components.update(r.component_key for r in new_records)

            summary[project] = SummaryInfo(
                new_by_category=_ordered_counts(dict(project_new), order),
                total_by_category=_ordered_counts(self.store.count_events_by_category(project, group), order),
                suppressed_new_by_category=_ordered_counts(
                    dict(Counter(r.category for r in suppressed_records)), order
                ),
            )
            details[project] = list(records)

        overview.affected_component_count = len(components)
        overview.new_by_category = _ordered_counts(dict(new_categories), order)
        return ScheduledEventsIdentified(
            group=group,
            window_start=since,
            overview=overview,
            summary=summary,
            details=details,
        )
