import datetime
import os

# Lightweight local DB and no startup seeding while tests import the package.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("AUTO_SEED_PUBLISHERS", "false")
os.environ.setdefault("SN_AUTH_DISABLED", "true")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from scheduled_notify.models import Base
from scheduled_notify.models.finding import Finding
from scheduled_notify.models.notification_publisher import NotificationPublisher
from scheduled_notify.models.policy_violation import PolicyViolation
from scheduled_notify.models.project import Project


T0 = datetime.datetime(2024, 5, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)
NOW = T0 + datetime.timedelta(hours=24)


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def add_project(db, name: str, *, version: str = "1.0", parent=None, active: bool = True) -> Project:
    project = Project(name=name, version=version, parent=parent, active=active)
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


def add_publisher(
    db,
    name: str = "Recorder",
    *,
    key: str = "recording",
    template: str = "$title",
    mime_type: str = "text/plain",
    publish_scheduled: bool = True,
) -> NotificationPublisher:
    publisher = NotificationPublisher(
        name=name,
        publisher_key=key,
        template=template,
        template_mime_type=mime_type,
        publish_scheduled=publish_scheduled,
    )
    db.add(publisher)
    db.commit()
    db.refresh(publisher)
    return publisher


def add_finding(
    db,
    project: Project,
    at: datetime.datetime,
    *,
    component: str = "lodash",
    version: str = "4.17.20",
    vuln_id: str = "CVE-2024-0001",
    severity: str = "HIGH",
    suppressed: bool = False,
) -> Finding:
    finding = Finding(
        project_id=project.id,
        component_name=component,
        component_version=version,
        vuln_id=vuln_id,
        source="NVD",
        severity=severity,
        attributed_on=at,
        suppressed=suppressed,
    )
    db.add(finding)
    db.commit()
    return finding


def add_violation(
    db,
    project: Project,
    at: datetime.datetime,
    *,
    component: str = "left-pad",
    policy: str = "No GPL",
    violation_type: str = "LICENSE",
    suppressed: bool = False,
) -> PolicyViolation:
    violation = PolicyViolation(
        project_id=project.id,
        component_name=component,
        component_version="1.0.0",
        policy_name=policy,
        violation_type=violation_type,
        violation_state="FAIL",
        timestamp=at,
        suppressed=suppressed,
    )
    db.add(violation)
    db.commit()
    return violation
