"""Outbound email: SMTP transport and the activation/recovery messages built on it."""

from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING, Protocol

from accounts.core.errors import DispatchFailure

if TYPE_CHECKING:
    from accounts.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailMessage:
    from_addr: str
    to: str
    subject: str
    text: str
    html: str


class Mailer(Protocol):
    def send(self, message: MailMessage) -> bool: ...


def _is_smtp_configured(settings: Settings) -> bool:
    if not settings.SMTP_HOST or not settings.SMTP_HOST.strip():
        return False
    if not settings.SMTP_USER or not settings.SMTP_USER.strip():
        return False
    if settings.SMTP_PASSWORD is None or not settings.SMTP_PASSWORD.get_secret_value():
        return False
    return bool(settings.SMTP_PORT)


class SmtpMailer:
    """Send MailMessage over SMTP (implicit TLS on 465, STARTTLS otherwise)."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def send(self, message: MailMessage) -> bool:
        """
        Deliver one message. Returns False without sending when SMTP is not configured.
        Raises DispatchFailure when the SMTP exchange fails or times out.
        """
        settings = self.settings
        if not _is_smtp_configured(settings):
            logger.warning("SMTP is not configured; skipping mail to %s", message.to)
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = message.from_addr
        msg["To"] = message.to
        msg.attach(MIMEText(message.text, "plain", "utf-8"))
        msg.attach(MIMEText(message.html, "html", "utf-8"))

        user = settings.SMTP_USER or ""
        password = settings.SMTP_PASSWORD.get_secret_value() if settings.SMTP_PASSWORD else ""
        timeout = settings.SMTP_TIMEOUT_SEC
        try:
            if settings.SMTP_PORT == 465:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, context=context, timeout=timeout) as server:
                    server.login(user, password)
                    server.sendmail(message.from_addr, [message.to], msg.as_string())
            else:
                with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=timeout) as server:
                    server.ehlo()
                    server.starttls(context=ssl.create_default_context())
                    server.login(user, password)
                    server.sendmail(message.from_addr, [message.to], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise DispatchFailure(f"SMTP delivery to {message.to} failed: {e!s}", cause=e) from e
        logger.info("Mail sent: to=%s subject=%s", message.to, message.subject)
        return True


class UserEmailManager:
    """Build account emails and hand them to a Mailer; delivery errors are logged, never raised."""

    def __init__(self, mailer: Mailer, settings: Settings) -> None:
        self.mailer = mailer
        self.settings = settings

    @property
    def _from_addr(self) -> str:
        # Empty only when SMTP_USER is unset; SmtpMailer skips delivery then.
        return self.settings.SMTP_FROM or self.settings.SMTP_USER or ""

    def activation_message(self, to: str, url: str) -> MailMessage:
        return MailMessage(
            from_addr=self._from_addr,
            to=to,
            subject=f"{self.settings.APP_NAME} - Account Activation",
            text=f"Activate your account from this link: {url}",
            html=f'<p>Activate your account from this link: <a href="{url}">{url}</a></p>',
        )

    def recovery_message(self, to: str, url: str) -> MailMessage:
        return MailMessage(
            from_addr=self._from_addr,
            to=to,
            subject=f"{self.settings.APP_NAME} - Password Recovery",
            text=f"Reset your password from this link: {url}",
            html=f'<p>Reset your password from this link: <a href="{url}">{url}</a></p>',
        )

    def activation(self, to: str, url: str) -> bool:
        return self._deliver(self.activation_message(to, url))

    def recovery(self, to: str, url: str) -> bool:
        return self._deliver(self.recovery_message(to, url))

    def _deliver(self, message: MailMessage) -> bool:
        try:
            return self.mailer.send(message)
        except DispatchFailure as e:
            logger.warning("Mail dispatch failed: %s", e.message)
        except Exception:
            logger.exception("Unexpected error sending mail to %s", message.to)
        return False
