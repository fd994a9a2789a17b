import datetime
import json
import smtplib

import pytest
import requests

from scheduled_notify.core.errors import PublishError
from scheduled_notify.services import publishers
from scheduled_notify.services.notification_types import Notification, PublishContext
from scheduled_notify.services.publishers import (
    ConsolePublisher,
    DeliveryTarget,
    SendMailPublisher,
    WebhookPublisher,
    render_body,
)


def _notification():
    return Notification(
        scope="PORTFOLIO",
        group="NEW_VULNERABILITY",
        level="INFORMATIONAL",
        title="2 new Vulnerability(s)",
        content="Find below a summary",
        timestamp=datetime.datetime(2024, 5, 2, 12, 0, tzinfo=datetime.timezone.utc),
        subject={"overview": {"newCount": 2}},
    )


def _ctx(notification):
    return PublishContext.from_notification(notification)


class _Response:
    def __init__(self, status_code, text=""):
        self.status_code = status_code
        self.text = text


def test_render_body_substitutes_template_fields():
    body = render_body(_notification(), {"template": "[$level] $title @ $timestamp $unknown"})
    assert body == "[INFORMATIONAL] 2 new Vulnerability(s) @ 2024-05-02T12:00:00Z $unknown"


def test_render_body_without_template_is_json():
    body = render_body(_notification(), {})
    assert json.loads(body)["subject"] == {"overview": {"newCount": 2}}


def test_console_publisher_logs_body(caplog):
    caplog.set_level("INFO")
    notification = _notification()
    ConsolePublisher().inform(_ctx(notification), notification, {"template": "$title"})
    assert any("2 new Vulnerability(s)" in rec.getMessage() for rec in caplog.records)


def test_webhook_posts_rendered_template(monkeypatch):
    sent = {}

    def _post(url, data=None, headers=None, timeout=None):
        sent.update(url=url, data=data, headers=headers, timeout=timeout)
        return _Response(204)

    monkeypatch.setattr(publishers.requests, "post", _post)
    notification = _notification()
    config = {
        "destination": "https://hooks.example.com/notify",
        "template": '{"text": "$title"}',
        "mimeType": "application/json",
        "token": "s3cret",
    }

    WebhookPublisher(timeout=3).inform(_ctx(notification), notification, config)

    assert sent["url"] == "https://hooks.example.com/notify"
    assert json.loads(sent["data"].decode("utf-8")) == {"text": "2 new Vulnerability(s)"}
    assert sent["headers"]["Authorization"] == "Bearer s3cret"
    assert sent["headers"]["Content-Type"] == "application/json"
    assert sent["timeout"] == 3


def test_webhook_requires_destination():
    notification = _notification()
    with pytest.raises(PublishError):
        WebhookPublisher().inform(_ctx(notification), notification, {})


def test_webhook_non_2xx_is_publish_error(monkeypatch):
    monkeypatch.setattr(publishers.requests, "post", lambda *a, **kw: _Response(500, "boom"))
    notification = _notification()
    with pytest.raises(PublishError, match="status=500"):
        WebhookPublisher().inform(_ctx(notification), notification, {"destination": "https://hooks.example.com"})


def test_webhook_transport_error_is_publish_error(monkeypatch):
    def _post(*_args, **_kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(publishers.requests, "post", _post)
    notification = _notification()
    with pytest.raises(PublishError, match="refused"):
        WebhookPublisher().inform(_ctx(notification), notification, {"destination": "https://hooks.example.com"})


class _FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        pass

    def starttls(self):
        pass

    def login(self, user, password):
        pass

    def send_message(self, msg):
        _FakeSMTP.sent.append(msg)


def _mailer(monkeypatch):
    _FakeSMTP.sent = []
    monkeypatch.setattr(publishers.smtplib, "SMTP", _FakeSMTP)
    mailer = SendMailPublisher()
    mailer.host = "smtp.example.com"
    mailer.sender = "dt@example.com"
    return mailer


def test_mail_to_targets_deduplicates_recipients(monkeypatch):
    mailer = _mailer(monkeypatch)
    notification = _notification()
    targets = [
        DeliveryTarget(name="Security", destinations=("Alice@example.com", "bob@example.com")),
        DeliveryTarget(name="Ops", destinations=("alice@example.com",)),
    ]

    mailer.inform_with_targets(
        _ctx(notification),
        notification,
        {"destination": "ops@example.com", "subjectPrefix": "[DT]", "template": "$content", "mimeType": "text/plain"},
        targets,
    )

    [msg] = _FakeSMTP.sent
    assert msg["To"] == "ops@example.com, alice@example.com, bob@example.com"
    assert msg["Subject"] == "[DT] 2 new Vulnerability(s)"
    assert msg.get_content().strip() == "Find below a summary"


def test_mail_without_recipients_fails(monkeypatch):
    mailer = _mailer(monkeypatch)
    notification = _notification()
    with pytest.raises(PublishError, match="No email recipients"):
        mailer.inform(_ctx(notification), notification, {})


def test_mail_smtp_failure_is_publish_error(monkeypatch):
    mailer = _mailer(monkeypatch)

    def _boom(self, msg):
        raise smtplib.SMTPException("relay denied")

    monkeypatch.setattr(_FakeSMTP, "send_message", _boom)
    notification = _notification()
    with pytest.raises(PublishError, match="relay denied"):
        mailer.inform(_ctx(notification), notification, {"destination": "ops@example.com"})


def test_render_body_escapes_fields_for_json_templates():
    notification = _notification()
    notification.title = 'Scheduled Rule \'Team "Core" digest\' C:\\reports'
    template = '{"title": "$title", "subject": $subject_json}'

    body = render_body(notification, {"template": template, "mimeType": "application/json"})

    assert json.loads(body) == {"title": notification.title, "subject": {"overview": {"newCount": 2}}}


def test_render_body_leaves_plain_text_unescaped():
    notification = _notification()
    notification.title = 'Team "Core" digest'
    assert render_body(notification, {"template": "$title", "mimeType": "text/plain"}) == 'Team "Core" digest'


@pytest.mark.parametrize("destination", [["https://hooks.example.com"], 42, {"url": "https://hooks.example.com"}])
def test_webhook_non_string_destination_is_publish_error(destination, monkeypatch):
    def _post(*_args, **_kwargs):
        raise AssertionError("no request expected")

    monkeypatch.setattr(publishers.requests, "post", _post)
    notification = _notification()
    with pytest.raises(PublishError, match="'destination' must be a string"):
        WebhookPublisher().inform(_ctx(notification), notification, {"destination": destination})


def test_webhook_non_string_token_is_publish_error():
    notification = _notification()
    with pytest.raises(PublishError, match="'token'"):
        WebhookPublisher().inform(
            _ctx(notification), notification, {"destination": "https://hooks.example.com", "token": 123}
        )


def test_mail_rejects_malformed_destination(monkeypatch):
    mailer = _mailer(monkeypatch)
    notification = _notification()
    with pytest.raises(PublishError, match="'destination'"):
        mailer.inform(_ctx(notification), notification, {"destination": {"to": "ops@example.com"}})
    with pytest.raises(PublishError, match="'destination'"):
        mailer.inform(_ctx(notification), notification, {"destination": ["ops@example.com", 7]})
    assert _FakeSMTP.sent == []


def test_mail_accepts_destination_list(monkeypatch):
    mailer = _mailer(monkeypatch)
    notification = _notification()

    mailer.inform(_ctx(notification), notification, {"destination": ["ops@example.com", " sec@example.com "]})

    [msg] = _FakeSMTP.sent
    assert msg["To"] == "ops@example.com, sec@example.com"


def test_mail_non_string_subject_prefix_is_publish_error(monkeypatch):
    mailer = _mailer(monkeypatch)
    notification = _notification()
    with pytest.raises(PublishError, match="'subjectPrefix'"):
        mailer.inform(_ctx(notification), notification, {"destination": "ops@example.com", "subjectPrefix": ["DT"]})
    assert _FakeSMTP.sent == []
