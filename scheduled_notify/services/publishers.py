"""
Notification publishers for scheduled deliveries (console, webhook, email).
"""

from __future__ import annotations

import json
import logging
import smtplib
import string
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Sequence

import requests

from ..core.config import settings
from ..core.errors import PublishError
from .notification_types import Notification, PublishContext


logger = logging.getLogger("publishers")

CONFIG_TEMPLATE_KEY = "template"
CONFIG_TEMPLATE_MIME_TYPE_KEY = "mimeType"
CONFIG_DESTINATION_KEY = "destination"


@dataclass(frozen=True)
class DeliveryTarget:
    """A recipient group (team) resolved to concrete addresses."""

    name: str
    destinations: tuple[str, ...] = ()


def config_str(config: dict, key: str) -> str:
    """String value of ``config[key]``; absent or null means empty."""
    value = config.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise PublishError(f"Publisher config {key!r} must be a string, got {type(value).__name__}")
    return value.strip()


def _is_json_mime_type(mime_type: str) -> bool:
    mime_type = mime_type.split(";", 1)[0].strip().lower()
    return mime_type == "application/json" or mime_type.endswith("+json")


def _json_escape(value: str) -> str:
    return json.dumps(value)[1:-1]


def render_body(notification: Notification, config: dict) -> str:
    template = config.get(CONFIG_TEMPLATE_KEY) or ""
    payload = notification.to_dict()
    if not template.strip():
        return json.dumps(payload, indent=2)
    fields = {
        "title": notification.title,
        "content": notification.content,
        "level": notification.level,
        "group": notification.group,
        "scope": notification.scope,
        "timestamp": payload["timestamp"],
    }
    # Text fields land inside JSON string literals of JSON templates
    if _is_json_mime_type(config.get(CONFIG_TEMPLATE_MIME_TYPE_KEY) or ""):
        fields = {key: _json_escape(value) for key, value in fields.items()}
    return string.Template(template).safe_substitute(
        subject_json=json.dumps(payload["subject"], indent=2),
        **fields,
    )


def _split_destinations(raw: object) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, (list, tuple)) and all(isinstance(item, str) for item in raw):
        items = list(raw)
    else:
        raise PublishError(
            f"Publisher config {CONFIG_DESTINATION_KEY!r} must be a string or a list of strings, "
            f"got {type(raw).__name__}"
        )
    return [item.strip() for item in items if item and item.strip()]


class Publisher:
    def inform(self, ctx: PublishContext, notification: Notification, config: dict) -> None:
        raise NotImplementedError


class TargetedPublisher(Publisher):
    """Publisher that can address explicit delivery targets."""

    def inform_with_targets(
        self,
        ctx: PublishContext,
        notification: Notification,
        config: dict,
        targets: Sequence[DeliveryTarget],
    ) -> None:
        raise NotImplementedError


class ConsolePublisher(Publisher):
    def inform(self, ctx: PublishContext, notification: Notification, config: dict) -> None:
        body = render_body(notification, config)
        logger.info("Console notification (%s) title=%s\n%s", ctx, notification.title, body)


class WebhookPublisher(Publisher):
    """
    Posts the rendered notification to ``config["destination"]``.

    The request content type follows the template MIME type; without a
    template the notification is sent as JSON.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self.timeout = timeout if timeout is not None else settings.webhook_timeout_sec

    def inform(self, ctx: PublishContext, notification: Notification, config: dict) -> None:
        url = config_str(config, CONFIG_DESTINATION_KEY)
        if not url:
            raise PublishError(f"Webhook destination is not configured ({ctx})")
        has_template = bool((config.get(CONFIG_TEMPLATE_KEY) or "").strip())
        content_type = (config.get(CONFIG_TEMPLATE_MIME_TYPE_KEY) or "application/json") if has_template else "application/json"
        body = render_body(notification, config)
        headers = {"Content-Type": content_type}
        token = config_str(config, "token")
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = requests.post(url, data=body.encode("utf-8"), headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise PublishError(f"Webhook request failed url={url}: {exc}") from exc
        if response.status_code // 100 != 2:
            raise PublishError(f"Webhook returned status={response.status_code} url={url} body={response.text[:200]}")


class SendMailPublisher(TargetedPublisher):
    """
    SMTP email publisher.

    Recipients come from ``config["destination"]`` (comma separated) and,
    when the rule has teams assigned, from the team members' addresses.
    """

    def __init__(self) -> None:
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_password
        self.sender = settings.smtp_from or self.user or "notifications@localhost"
        self.starttls = settings.smtp_starttls

    def inform(self, ctx: PublishContext, notification: Notification, config: dict) -> None:
        self._send(ctx, notification, config, _split_destinations(config.get(CONFIG_DESTINATION_KEY)))

    def inform_with_targets(
        self,
        ctx: PublishContext,
        notification: Notification,
        config: dict,
        targets: Sequence[DeliveryTarget],
    ) -> None:
        recipients = _split_destinations(config.get(CONFIG_DESTINATION_KEY))
        for target in targets:
            recipients.extend(target.destinations)
        self._send(ctx, notification, config, recipients)

    def _send(self, ctx: PublishContext, notification: Notification, config: dict, recipients: list[str]) -> None:
        unique = list(dict.fromkeys(r.strip().lower() for r in recipients if r and r.strip()))
        if not unique:
            raise PublishError(f"No email recipients resolved ({ctx})")
        if not self.host:
            raise PublishError("SMTP_HOST is not configured")
        prefix = config_str(config, "subjectPrefix")
        msg = EmailMessage()
        msg["Subject"] = f"{prefix} {notification.title}".strip()
        msg["From"] = self.sender
        msg["To"] = ", ".join(unique)
        body = render_body(notification, config)
        if (config.get(CONFIG_TEMPLATE_MIME_TYPE_KEY) or "").lower() == "text/html":
            msg.set_content(notification.content)  # plain text fallback
            msg.add_alternative(body, subtype="html")
        else:
            msg.set_content(body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=8) as server:
                server.ehlo()
                if self.starttls:
                    server.starttls()
                    server.ehlo()
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise PublishError(f"SMTP send failed: {exc}") from exc
        logger.info("Email sent recipients=%s (%s)", len(unique), ctx)
