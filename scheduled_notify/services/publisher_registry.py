"""
Publisher registry and dispatch.

Publisher descriptors stored in the database name a registry key; the
registry maps that key to a factory known at import time. Targeted
publishers (email) are flagged on their registry entry, so routing to
``inform_with_targets`` never depends on inspecting the instance type.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ..core.errors import ConfigParseError, PublisherResolutionError
from ..models.notification_publisher import NotificationPublisher
from .notification_types import Notification, PublishContext
from .publishers import (
    CONFIG_TEMPLATE_KEY,
    CONFIG_TEMPLATE_MIME_TYPE_KEY,
    ConsolePublisher,
    DeliveryTarget,
    Publisher,
    SendMailPublisher,
    TargetedPublisher,
    WebhookPublisher,
)


CONSOLE = "console"
WEBHOOK = "webhook"
EMAIL = "email"

RESERVED_CONFIG_KEYS = (CONFIG_TEMPLATE_KEY, CONFIG_TEMPLATE_MIME_TYPE_KEY)


@dataclass(frozen=True)
class PublisherSpec:
    key: str
    factory: Callable[[], Publisher]
    targeted: bool = False


class PublisherRegistry:
    def __init__(self) -> None:
        self._specs: dict[str, PublisherSpec] = {}

    def register(self, key: str, factory: Callable[[], Publisher], *, targeted: bool = False) -> None:
        self._specs[key.strip().lower()] = PublisherSpec(key=key.strip().lower(), factory=factory, targeted=targeted)

    def get(self, key: str) -> Optional[PublisherSpec]:
        return self._specs.get((key or "").strip().lower())

    def keys(self) -> list[str]:
        return sorted(self._specs)

    def resolve(self, descriptor: Optional[NotificationPublisher]) -> tuple[PublisherSpec, Publisher]:
        if descriptor is None:
            raise PublisherResolutionError("Rule has no notification publisher assigned")
        if not descriptor.publish_scheduled:
            raise PublisherResolutionError(f"Publisher {descriptor.name!r} does not support scheduled delivery")
        spec = self.get(descriptor.publisher_key)
        if spec is None:
            raise PublisherResolutionError(
                f"Unknown publisher key {descriptor.publisher_key!r} for publisher {descriptor.name!r}"
            )
        try:
            publisher = spec.factory()
        except Exception as exc:
            raise PublisherResolutionError(f"Publisher {spec.key!r} could not be constructed: {exc}") from exc
        expected = TargetedPublisher if spec.targeted else Publisher
        if not isinstance(publisher, expected):
            raise PublisherResolutionError(
                f"Publisher {spec.key!r} produced {type(publisher).__name__}, not a {expected.__name__}"
            )
        return spec, publisher


def default_registry() -> PublisherRegistry:
    registry = PublisherRegistry()
    registry.register(CONSOLE, ConsolePublisher)
    registry.register(WEBHOOK, WebhookPublisher)
    registry.register(EMAIL, SendMailPublisher, targeted=True)
    return registry


def parse_publisher_config(raw: Optional[str]) -> dict:
    """Parse a rule's publisher configuration; absent or blank means empty."""
    if raw is None or not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise ConfigParseError(f"Publisher configuration is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigParseError(f"Publisher configuration must be a JSON object, got {type(data).__name__}")
    return data


def merge_publisher_config(
    descriptor: NotificationPublisher,
    rule_config: dict,
    *,
    logger: Optional[logging.Logger] = None,
) -> dict:
    merged = dict(rule_config)
    overridden = [key for key in RESERVED_CONFIG_KEYS if key in merged]
    if overridden and logger:
        logger.warning("Ignoring reserved publisher config keys from rule: %s", ", ".join(overridden))
    merged[CONFIG_TEMPLATE_MIME_TYPE_KEY] = descriptor.template_mime_type or "text/plain"
    merged[CONFIG_TEMPLATE_KEY] = descriptor.template or ""
    return merged


class PublisherDispatcher:
    def __init__(self, registry: PublisherRegistry, *, logger: Optional[logging.Logger] = None) -> None:
        self.registry = registry
        self.logger = logger or logging.getLogger("publishers")

    def dispatch(
        self,
        ctx: PublishContext,
        notification: Notification,
        descriptor: Optional[NotificationPublisher],
        config: dict,
        targets: Sequence[DeliveryTarget] = (),
    ) -> None:
        spec, publisher = self.registry.resolve(descriptor)
        if spec.targeted and targets:
            self.logger.debug("Dispatching to %s with %s target(s) (%s)", spec.key, len(targets), ctx)
            publisher.inform_with_targets(ctx, notification, config, list(targets))
            return
        self.logger.debug("Dispatching to %s (%s)", spec.key, ctx)
        publisher.inform(ctx, notification, config)
