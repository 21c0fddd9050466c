# siggen/mailer.py

import logging
import mimetypes
import re
import smtplib
import ssl
from contextlib import contextmanager
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr, parseaddr
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import certifi
import markdown

from siggen.config import SmtpSettings
from siggen.errors import DeliveryError, SigGenError, SourceError
from siggen.models import GeneratedArtifact, fold


logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

RESERVED_DOMAINS = frozenset({"example.com", "example.net", "example.org"})
RESERVED_SUFFIXES = (".test", ".example", ".invalid", ".localhost")

Attachment = Tuple[str, bytes, str, str]   # filename, data, maintype, subtype


# ============================================================
# recipients
# ============================================================

def recipient_skip_reason(address: Optional[str]) -> Optional[str]:
    """Why an address must not be mailed, or None when it is deliverable."""
    raw = (address or "").strip()
    if not raw:
        return "no address"

    _, addr = parseaddr(raw)
    if not addr or not EMAIL_RE.match(addr):
        return "unparseable address"

    domain = fold(addr.rsplit("@", 1)[1]).rstrip(".")
    if domain in RESERVED_DOMAINS or domain.endswith(RESERVED_SUFFIXES):
        return "reserved domain"
    return None


def is_deliverable_email(address: Optional[str]) -> bool:
    return recipient_skip_reason(address) is None


# ============================================================
# messages
# ============================================================

def read_attachment(path: str) -> Attachment:
    p = Path(path).expanduser()
    try:
        data = p.read_bytes()
    except OSError as e:
        raise SourceError(f"Cannot read attachment {p}: {e}", path=str(p)) from e
    mtype, _ = mimetypes.guess_type(p.name)
    maintype, _, subtype = (mtype or "application/octet-stream").partition("/")
    return p.name, data, maintype, subtype


def artifact_attachment(artifact: GeneratedArtifact) -> Attachment:
    return artifact.filename, artifact.data(), "text", "html"


def build_message(
    sender: str,
    recipient: str,
    subject: str,
    body: str,
    *,
    recipient_name: str = "",
    attachments: Sequence[Attachment] = (),
) -> EmailMessage:
    """
    Plain-text body with an HTML alternative (the body read as Markdown) and
    the given attachments.
    """
    _, addr = parseaddr(recipient)
    message = EmailMessage()
    message["From"] = sender
    message["To"] = formataddr((recipient_name, addr or recipient))
    message["Subject"] = subject

    message.set_content(body or "")
    message.add_alternative(markdown.markdown(body or ""), subtype="html")

    for filename, content, maintype, subtype in attachments:
        message.add_attachment(content, maintype=maintype, subtype=subtype, filename=filename)
    return message


# ============================================================
# SMTP session
# ============================================================

def ssl_context() -> ssl.SSLContext:
    return ssl.create_default_context(cafile=certifi.where())


def _clean_password(password: str) -> str:
    # app passwords are often pasted in their displayed "abcd efgh ..." groups
    return (password or "").replace(" ", "").strip()


@contextmanager
def open_session(settings: SmtpSettings):
    """
    Connected and authenticated SMTP session.

    Raises:
        DeliveryError: connection, TLS or login failed.
    """
    if not settings.host:
        raise DeliveryError("SMTP host is not set.")

    smtp = None
    try:
        if settings.use_ssl:
            smtp = smtplib.SMTP_SSL(
                settings.host, settings.port, timeout=settings.timeout, context=ssl_context()
            )
        else:
            smtp = smtplib.SMTP(settings.host, settings.port, timeout=settings.timeout)
            smtp.ehlo()
            smtp.starttls(context=ssl_context())
            smtp.ehlo()
        if settings.username:
            smtp.login(settings.username, _clean_password(settings.password))
    except (smtplib.SMTPException, OSError) as e:
        if smtp is not None:
            smtp.close()
        raise DeliveryError(f"SMTP connection failed: {e}") from e

    try:
        yield smtp
    finally:
        try:
            smtp.quit()
        except (smtplib.SMTPException, OSError) as e:
            logger.debug("SMTP quit failed: %s", e)
            smtp.close()


def check_connection(settings: SmtpSettings, session_factory=open_session) -> Tuple[bool, str]:
    logger.info("Testing SMTP connection to %s:%s", settings.host, settings.port)
    try:
        with session_factory(settings):
            pass
    except DeliveryError as e:
        return False, f"SMTP test failed: {e}"
    return True, "SMTP connection OK!"


# ============================================================
# delivery
# ============================================================

@dataclass(frozen=True)
class DeliveryReport:
    sent: Tuple[GeneratedArtifact, ...] = ()
    skipped: Tuple[GeneratedArtifact, ...] = ()
    diagnostics: Tuple[str, ...] = ()
    error: Optional[SigGenError] = None

    @property
    def aborted(self) -> bool:
        return self.error is not None


def send_artifacts(
    artifacts: Iterable[GeneratedArtifact],
    settings: SmtpSettings,
    *,
    subject: str,
    body: str,
    extra_attachment: Optional[str] = None,
    dry_run: bool = False,
    session_factory=open_session,
    on_item: Optional[Callable[[GeneratedArtifact], None]] = None,
) -> DeliveryReport:
    """
    Mail each artifact to its recipient over one shared SMTP session.

    Reserved or unparseable addresses are skipped. A transport failure aborts
    the remaining sends; messages already sent stay sent.
    """
    items = list(artifacts)
    sent: List[GeneratedArtifact] = []
    skipped: List[GeneratedArtifact] = []
    diagnostics: List[str] = []

    def _report(error: Optional[SigGenError] = None) -> DeliveryReport:
        return DeliveryReport(tuple(sent), tuple(skipped), tuple(diagnostics), error)

    extra: List[Attachment] = []
    if extra_attachment:
        try:
            extra.append(read_attachment(extra_attachment))
        except SourceError as e:
            logger.error("%s", e)
            diagnostics.append(str(e))
            return _report(e)

    reasons = [recipient_skip_reason(a.email) for a in items]
    sender = settings.from_address

    @contextmanager
    def _no_session():
        yield None

    if dry_run or all(reasons):
        session_cm = _no_session()
    else:
        session_cm = session_factory(settings)

    try:
        with session_cm as session:
            for artifact, reason in zip(items, reasons):
                if reason:
                    line = f"Skipping reserved/invalid recipient: {artifact.email or '(none)'} ({reason})"
                    logger.warning("%s", line)
                    diagnostics.append(line)
                    skipped.append(artifact)
                    if on_item is not None:
                        on_item(artifact)
                    continue

                message = build_message(
                    sender,
                    artifact.email,
                    subject,
                    body,
                    recipient_name=artifact.name,
                    attachments=[artifact_attachment(artifact), *extra],
                )

                if dry_run:
                    diagnostics.append(f"Dry run: would send to {artifact.name} <{artifact.email}>")
                    sent.append(artifact)
                else:
                    try:
                        session.send_message(message)
                    except smtplib.SMTPRecipientsRefused as e:
                        line = f"Recipient refused: {artifact.email} ({e.recipients})"
                        logger.warning("%s", line)
                        diagnostics.append(line)
                        skipped.append(artifact)
                        if on_item is not None:
                            on_item(artifact)
                        continue
                    except (smtplib.SMTPException, OSError) as e:
                        raise DeliveryError(f"Send error: {e}") from e

                    line = f"Sent to {artifact.name} <{artifact.email}>"
                    logger.info("%s", line)
                    diagnostics.append(line)
                    sent.append(artifact)

                if on_item is not None:
                    on_item(artifact)
    except DeliveryError as e:
        logger.error("%s", e)
        diagnostics.append(str(e))
        return _report(e)

    summary = f"Sent {len(sent)} message(s), skipped {len(skipped)}."
    logger.info("%s", summary)
    diagnostics.append(summary)
    return _report()
