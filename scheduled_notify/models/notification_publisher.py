"""
Notification publisher descriptors.

A descriptor names a registered publisher implementation (`publisher_key`)
and carries the default template that is injected into every dispatch.
"""

from __future__ import annotations

import uuid

from sqlalchemy import String, Text, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


class NotificationPublisher(Base):
    __tablename__ = "notification_publishers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(255), unique=True)
    description: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    publisher_key: Mapped[str] = mapped_column(String(64))  # console | webhook | email
    template: Mapped[str | None] = mapped_column(Text, nullable=True)
    template_mime_type: Mapped[str] = mapped_column(String(128), default="text/plain")
    default_publisher: Mapped[bool] = mapped_column(Boolean, default=False)
    publish_scheduled: Mapped[bool] = mapped_column(Boolean, default=False)
