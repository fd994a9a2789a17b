"""
Vulnerability findings attributed to project components.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, DateTime, Boolean, Float, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


class Finding(Base):
    __tablename__ = "findings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), index=True)
    component_name: Mapped[str] = mapped_column(String(255))
    component_version: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vuln_id: Mapped[str] = mapped_column(String(64))  # e.g. CVE-2024-1234
    source: Mapped[str | None] = mapped_column(String(32), nullable=True)  # NVD | GITHUB | OSV
    severity: Mapped[str] = mapped_column(String(16), default="UNASSIGNED")  # CRITICAL | HIGH | MEDIUM | LOW | INFO | UNASSIGNED
    cvss_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    title: Mapped[str | None] = mapped_column(String(512), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # When the vulnerability was attributed to the component (event time)
    attributed_on: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    suppressed: Mapped[bool] = mapped_column(Boolean, default=False)
    analysis_state: Mapped[str | None] = mapped_column(String(32), nullable=True)

    __table_args__ = (
        Index("ix_findings_project_attributed", "project_id", "attributed_on"),
    )
