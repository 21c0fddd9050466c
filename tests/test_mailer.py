import smtplib
from contextlib import contextmanager

import pytest

from siggen.config import SmtpSettings
from siggen.errors import DeliveryError, SourceError
from siggen.mailer import (
    build_message,
    check_connection,
    is_deliverable_email,
    recipient_skip_reason,
    send_artifacts,
)
from siggen.models import GeneratedArtifact


SETTINGS = SmtpSettings(host="smtp.realdomain.com", username="me@realdomain.com", password="ab cd")


class FakeSMTP:
    def __init__(self, fail_after=None, refuse=()):
        self.sent = []
        self.opened = 0
        self.fail_after = fail_after
        self.refuse = set(refuse)

    def factory(self, settings):
        @contextmanager
        def _session():
            self.opened += 1
            yield self
        return _session()

    def send_message(self, message):
        to = message["To"]
        if any(addr in to for addr in self.refuse):
            raise smtplib.SMTPRecipientsRefused({to: (550, b"mailbox unavailable")})
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            raise smtplib.SMTPServerDisconnected("connection lost")
        self.sent.append(message)


def _artifact(name, email, row=2):
    return GeneratedArtifact(
        row_number=row,
        name=name,
        email=email,
        content=f"<p>{name}</p>",
        filename=f"{name}_signature.html",
    )


@pytest.mark.parametrize(
    "address, reason",
    [
        ("user@realdomain.com", None),
        ("Ann <ann@realdomain.com>", None),
        ("user@example.com", "reserved domain"),
        ("user@EXAMPLE.org", "reserved domain"),
        ("user@host.test", "reserved domain"),
        ("user@box.localhost", "reserved domain"),
        ("user@mail.invalid", "reserved domain"),
        ("not-an-address", "unparseable address"),
        ("  ", "no address"),
        (None, "no address"),
    ],
)
def test_recipient_skip_reason(address, reason):
    assert recipient_skip_reason(address) == reason
    assert is_deliverable_email(address) is (reason is None)


def test_reserved_domain_is_skipped_real_domain_is_sent():
    smtp = FakeSMTP()
    artifacts = [_artifact("Ann", "user@example.com"), _artifact("Bo", "user@realdomain.com", row=3)]

    report = send_artifacts(
        artifacts, SETTINGS, subject="Signature", body="Hello", session_factory=smtp.factory
    )

    assert not report.aborted
    assert [a.email for a in report.sent] == ["user@realdomain.com"]
    assert [a.email for a in report.skipped] == ["user@example.com"]
    assert report.diagnostics == (
        "Skipping reserved/invalid recipient: user@example.com (reserved domain)",
        "Sent to Bo <user@realdomain.com>",
        "Sent 1 message(s), skipped 1.",
    )
    assert smtp.opened == 1
    assert len(smtp.sent) == 1


def test_message_carries_artifact_and_extra_attachment(tmp_path):
    extra = tmp_path / "guide.pdf"
    extra.write_bytes(b"%PDF-1.4 fake")
    smtp = FakeSMTP()

    send_artifacts(
        [_artifact("Bo", "bo@realdomain.com")],
        SETTINGS,
        subject="Your signature",
        body="Hi **Bo**",
        extra_attachment=str(extra),
        session_factory=smtp.factory,
    )

    message = smtp.sent[0]
    assert message["Subject"] == "Your signature"
    assert message["From"] == "me@realdomain.com"
    assert message["To"] == "Bo <bo@realdomain.com>"

    attachments = {part.get_filename(): part for part in message.iter_attachments()}
    assert set(attachments) == {"Bo_signature.html", "guide.pdf"}
    assert attachments["Bo_signature.html"].get_content_type() == "text/html"
    assert attachments["guide.pdf"].get_content_type() == "application/pdf"
    assert attachments["guide.pdf"].get_payload(decode=True) == b"%PDF-1.4 fake"


def test_build_message_renders_markdown_alternative():
    message = build_message("me@realdomain.com", "bo@realdomain.com", "Subj", "Hi **Bo**")

    html = message.get_body(preferencelist=("html",)).get_content()
    text = message.get_body(preferencelist=("plain",)).get_content()
    assert "<strong>Bo</strong>" in html
    assert text.strip() == "Hi **Bo**"


def test_transport_failure_aborts_remaining_sends():
    smtp = FakeSMTP(fail_after=1)
    artifacts = [
        _artifact("Ann", "ann@realdomain.com"),
        _artifact("Bo", "bo@realdomain.com", row=3),
        _artifact("Cy", "cy@realdomain.com", row=4),
    ]
    visited = []

    report = send_artifacts(
        artifacts, SETTINGS, subject="s", body="b", session_factory=smtp.factory, on_item=visited.append
    )

    assert report.aborted
    assert isinstance(report.error, DeliveryError)
    assert [a.name for a in report.sent] == ["Ann"]
    assert [a.name for a in visited] == ["Ann"]
    assert report.diagnostics[-1].startswith("Send error:")


def test_refused_recipient_is_skipped_and_batch_continues():
    smtp = FakeSMTP(refuse={"ann@realdomain.com"})
    artifacts = [_artifact("Ann", "ann@realdomain.com"), _artifact("Bo", "bo@realdomain.com", row=3)]

    report = send_artifacts(artifacts, SETTINGS, subject="s", body="b", session_factory=smtp.factory)

    assert not report.aborted
    assert [a.name for a in report.sent] == ["Bo"]
    assert [a.name for a in report.skipped] == ["Ann"]
    assert report.diagnostics[0].startswith("Recipient refused: ann@realdomain.com")


def _no_session(settings):
    raise AssertionError("no SMTP session expected")


def test_dry_run_opens_no_session():
    report = send_artifacts(
        [_artifact("Ann", "ann@realdomain.com"), _artifact("Bo", "bo@example.net", row=3)],
        SETTINGS,
        subject="s",
        body="b",
        dry_run=True,
        session_factory=_no_session,
    )

    assert [a.name for a in report.sent] == ["Ann"]
    assert report.diagnostics == (
        "Dry run: would send to Ann <ann@realdomain.com>",
        "Skipping reserved/invalid recipient: bo@example.net (reserved domain)",
        "Sent 1 message(s), skipped 1.",
    )


def test_all_recipients_skipped_opens_no_session():
    report = send_artifacts(
        [_artifact("Ann", ""), _artifact("Bo", "bo@example.com", row=3)],
        SETTINGS,
        subject="s",
        body="b",
        session_factory=_no_session,
    )

    assert report.sent == ()
    assert len(report.skipped) == 2
    assert report.diagnostics[0] == "Skipping reserved/invalid recipient: (none) (no address)"


def test_unreadable_extra_attachment_aborts_before_sending(tmp_path):
    smtp = FakeSMTP()

    report = send_artifacts(
        [_artifact("Ann", "ann@realdomain.com")],
        SETTINGS,
        subject="s",
        body="b",
        extra_attachment=str(tmp_path / "missing.pdf"),
        session_factory=smtp.factory,
    )

    assert isinstance(report.error, SourceError)
    assert report.sent == ()
    assert smtp.opened == 0


def test_check_connection():
    assert check_connection(SETTINGS, session_factory=FakeSMTP().factory) == (True, "SMTP connection OK!")

    def refusing(settings):
        raise DeliveryError("SMTP connection failed: auth")

    ok, message = check_connection(SETTINGS, session_factory=refusing)
    assert not ok
    assert message == "SMTP test failed: SMTP connection failed: auth"


def test_open_session_without_host_fails():
    ok, message = check_connection(SmtpSettings(host=""))
    assert not ok
    assert "SMTP host is not set." in message
