"""
Tests for invitation templates and SMTP delivery.
"""

import smtplib
import ssl
from email import message_from_string
from pathlib import Path
from typing import List

import pytest

from coffeechat.config import Recipient, SmtpConfig
from coffeechat.domain.exceptions import EmailDeliveryError, TemplateError
from coffeechat.mailer.sender import EmailSender
from coffeechat.mailer.template import EmailTemplate

TEMPLATE = """Subject: Coffee, {{ recipient_name }}?
---
Hi {{ recipient_name }},
{% for slot in availabilities %}
- {{ slot }}
{%- endfor %}
{{ sender_name }}
"""

SLOTS = ["Monday Nov 25: 9am–10am", "Tuesday Nov 26: 2pm–4:30pm"]


class FakeSMTP:
    """Records the SMTP conversation instead of talking to a server."""

    instances: List["FakeSMTP"] = []
    fail_for: set = set()

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.started_tls = False
        self.tls_context = None
        self.logged_in = None
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self, context=None):
        self.started_tls = True
        self.tls_context = context

    def login(self, user, password):
        self.logged_in = (user, password)

    def sendmail(self, from_addr, to_addrs, msg):
        if set(to_addrs) & FakeSMTP.fail_for:
            raise smtplib.SMTPRecipientsRefused({to_addrs[0]: (550, b"No such user")})
        self.sent.append((from_addr, to_addrs, msg))


@pytest.fixture(autouse=True)
def reset_fake_smtp():
    FakeSMTP.instances = []
    FakeSMTP.fail_for = set()


@pytest.fixture
def smtp_config() -> SmtpConfig:
    return SmtpConfig(host="smtp.example.com", user="me", password="secret", from_email="me@example.com")


class TestEmailTemplate:
    """Tests for EmailTemplate."""

    def test_load_and_render(self, tmp_path: Path):
        path = tmp_path / "invite.txt"
        path.write_text(TEMPLATE, encoding="utf-8")

        subject, body = EmailTemplate.load(path).render("Sam", "Alex", SLOTS)

        assert subject == "Coffee, Sam?"
        assert body.startswith("Hi Sam,")
        assert "- Monday Nov 25: 9am–10am\n- Tuesday Nov 26: 2pm–4:30pm" in body
        assert body.rstrip().endswith("Alex")

    def test_missing_separator(self, tmp_path: Path):
        path = tmp_path / "invite.txt"
        path.write_text("Subject: Hi\nHello there\n", encoding="utf-8")

        with pytest.raises(TemplateError, match="Template format error"):
            EmailTemplate.load(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(TemplateError, match="Failed to read template"):
            EmailTemplate.load(tmp_path / "nope.txt")

    def test_syntax_error(self):
        with pytest.raises(TemplateError, match="Failed to parse"):
            EmailTemplate.from_content("Hi", "{% for slot in availabilities %}")

    def test_unknown_variable(self):
        template = EmailTemplate.from_content("Hi {{ nickname }}", "Body")

        with pytest.raises(TemplateError, match="Failed to render"):
            template.render("Sam", "Alex", SLOTS)


class TestEmailSender:
    """Tests for EmailSender."""

    def test_send_invitation(self, smtp_config):
        sender = EmailSender(smtp_config, smtp_factory=FakeSMTP)
        template = EmailTemplate.from_content("Coffee?", "Hi {{ recipient_name }}")

        sender.send_invitation(Recipient(name="Sam", email="sam@example.com"), "Alex", SLOTS, template)

        smtp = FakeSMTP.instances[0]
        assert (smtp.host, smtp.port, smtp.timeout) == ("smtp.example.com", 587, 30)
        assert smtp.started_tls
        assert isinstance(smtp.tls_context, ssl.SSLContext)
        assert smtp.tls_context.verify_mode == ssl.CERT_REQUIRED
        assert smtp.tls_context.check_hostname
        assert smtp.logged_in == ("me", "secret")

        from_addr, to_addrs, raw = smtp.sent[0]
        message = message_from_string(raw)
        assert from_addr == "me@example.com"
        assert to_addrs == ["sam@example.com"]
        assert message["Subject"] == "Coffee?"
        assert message.get_payload(decode=True).decode("utf-8") == "Hi Sam"

    def test_refused_recipient_raises(self, smtp_config):
        FakeSMTP.fail_for = {"sam@example.com"}
        sender = EmailSender(smtp_config, smtp_factory=FakeSMTP)
        template = EmailTemplate.from_content("Coffee?", "Hi")

        with pytest.raises(EmailDeliveryError) as exc_info:
            sender.send_invitation(Recipient(name="Sam", email="sam@example.com"), "Alex", SLOTS, template)

        assert exc_info.value.recipient == "sam@example.com"

    def test_send_invitations_continues_after_failure(self, smtp_config):
        """One refused recipient does not stop the others."""
        FakeSMTP.fail_for = {"bad@example.com"}
        sender = EmailSender(smtp_config, smtp_factory=FakeSMTP)
        template = EmailTemplate.from_content("Coffee?", "{% for slot in availabilities %}{{ slot }}\n{% endfor %}")
        recipients = [
            Recipient(name="Bad", email="bad@example.com"),
            Recipient(name="Sam", email="sam@example.com"),
        ]

        report = sender.send_invitations(recipients, "Alex", SLOTS, template)

        assert report.sent == ["sam@example.com"]
        assert [email for email, _ in report.failed] == ["bad@example.com"]
        assert (report.success_count, report.error_count) == (1, 1)

    def test_no_starttls_when_disabled(self, smtp_config):
        config = smtp_config.model_copy(update={"use_starttls": False})
        sender = EmailSender(config, smtp_factory=FakeSMTP)

        sender.send_invitation(
            Recipient(name="Sam", email="sam@example.com"), "Alex", SLOTS, EmailTemplate.from_content("Hi", "Hi")
        )

        assert not FakeSMTP.instances[0].started_tls
