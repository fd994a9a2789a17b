"""
Policy violations raised against project components.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


class PolicyViolation(Base):
    __tablename__ = "policy_violations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), index=True)
    component_name: Mapped[str] = mapped_column(String(255))
    component_version: Mapped[str | None] = mapped_column(String(255), nullable=True)
    policy_name: Mapped[str] = mapped_column(String(255))
    condition: Mapped[str | None] = mapped_column(String(512), nullable=True)
    violation_type: Mapped[str] = mapped_column(String(16))  # LICENSE | SECURITY | OPERATIONAL
    violation_state: Mapped[str | None] = mapped_column(String(16), nullable=True)  # INFO | WARN | FAIL
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    suppressed: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        Index("ix_policy_violations_project_timestamp", "project_id", "timestamp"),
    )
