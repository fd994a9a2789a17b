import datetime
import json
import logging

import pytest

from scheduled_notify.core.errors import RuleNotFoundError
from scheduled_notify.models.team import Team, TeamMember
from scheduled_notify.services.publisher_seed import seed_default_publishers
from scheduled_notify.services.rule_store import (
    TRIGGER_EVENT,
    TRIGGER_SCHEDULE,
    advance_watermark,
    create_scheduled_rule,
    delivery_targets,
    get_publisher_by_name,
    list_publishers,
    list_scheduled_rules,
    load_rule_by_id,
    resolve_rule_projects,
)
from scheduled_notify.services.notification_types import as_utc

from conftest import NOW, T0, add_project, add_publisher


def test_create_rule_defaults(db):
    rule = create_scheduled_rule(db, name="Digest", publisher=None, publisher_config={"destination": "x"})

    assert rule.cron_config == "0 12 * * *"
    assert rule.scope == "PORTFOLIO"
    assert rule.enabled is True
    assert rule.publish_only_with_updates is False
    assert json.loads(rule.publisher_config) == {"destination": "x"}
    assert rule.last_execution_time is not None


def test_load_rule_by_id_raises_for_unknown(db):
    with pytest.raises(RuleNotFoundError):
        load_rule_by_id(db, "nope")


def test_advance_watermark_is_monotonic(db, caplog):
    rule = create_scheduled_rule(db, name="Digest", publisher=None, last_execution_time=NOW)
    caplog.set_level(logging.WARNING)

    assert advance_watermark(db, rule.id, T0) is False
    db.refresh(rule)
    assert as_utc(rule.last_execution_time) == NOW
    assert any("Refusing to move watermark backward" in rec.message for rec in caplog.records)

    later = NOW + datetime.timedelta(minutes=5)
    assert advance_watermark(db, rule.id, later) is True
    db.refresh(rule)
    assert as_utc(rule.last_execution_time) == later


def test_resolve_projects_with_descendants(db):
    root = add_project(db, "Platform")
    child = add_project(db, "Platform API", parent=root)
    add_project(db, "Platform API Client", parent=child)
    add_project(db, "Platform Legacy", parent=root, active=False)
    add_project(db, "Unrelated")

    with_children = create_scheduled_rule(db, name="A", publisher=None, projects=[root], notify_children=True)
    without_children = create_scheduled_rule(db, name="B", publisher=None, projects=[root], notify_children=False)

    assert [p.name for p in resolve_rule_projects(db, with_children)] == [
        "Platform",
        "Platform API",
        "Platform API Client",
    ]
    assert [p.name for p in resolve_rule_projects(db, without_children)] == ["Platform"]


def test_rule_without_projects_covers_portfolio(db):
    add_project(db, "Beta")
    add_project(db, "Alpha")
    add_project(db, "Retired", active=False)
    rule = create_scheduled_rule(db, name="Everything", publisher=None)

    assert [p.name for p in resolve_rule_projects(db, rule)] == ["Alpha", "Beta"]


def test_delivery_targets_skip_members_without_email(db):
    team = Team(
        name="Security",
        members=[
            TeamMember(username="alice", email=" alice@example.com "),
            TeamMember(username="bob", email=None),
        ],
    )
    db.add(team)
    db.commit()
    rule = create_scheduled_rule(db, name="Digest", publisher=None, teams=[team])

    [target] = delivery_targets(rule)
    assert target.destinations == ("alice@example.com",)


def test_list_rules_and_publishers(db):
    add_publisher(db, "Realtime only", key="console", publish_scheduled=False)
    seeded = seed_default_publishers(db)
    assert seeded == 3
    assert seed_default_publishers(db) == 0

    disabled = create_scheduled_rule(db, name="Zed", publisher=None)
    disabled.enabled = False
    db.commit()
    create_scheduled_rule(db, name="Alpha", publisher=get_publisher_by_name(db, "Email"))

    assert [r.name for r in list_scheduled_rules(db)] == ["Alpha", "Zed"]
    assert [r.name for r in list_scheduled_rules(db, enabled_only=True)] == ["Alpha"]
    assert [p.name for p in list_publishers(db, TRIGGER_SCHEDULE)] == ["Console", "Email", "Outbound Webhook"]
    assert [p.name for p in list_publishers(db, TRIGGER_EVENT)] == ["Realtime only"]
    assert len(list_publishers(db)) == 4
