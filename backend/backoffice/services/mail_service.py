# Overview: Outgoing email: SMTP transport and template rendering.

from __future__ import annotations

import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr

from flask import Flask, current_app, render_template


class MailDeliveryError(Exception):
    """Raised when a message could not be handed to the mail server."""
    pass


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    html: str
    to_name: str | None = None


class SmtpMailer:
    """
    Sends one message per SMTP connection.

    With suppress=True nothing leaves the process; the message is only logged.
    """

    def __init__(
        self,
        *,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = False,
        timeout: int = 30,
        suppress: bool = False,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout
        self.suppress = suppress

    @classmethod
    def from_config(cls, config) -> "SmtpMailer":
        return cls(
            host=config.get("MAIL_SERVER", "localhost"),
            port=int(config.get("MAIL_PORT", 25)),
            sender=config.get("MAIL_DEFAULT_SENDER", "backoffice@localhost"),
            username=config.get("MAIL_USERNAME"),
            password=config.get("MAIL_PASSWORD"),
            use_tls=bool(config.get("MAIL_USE_TLS", False)),
            timeout=int(config.get("MAIL_TIMEOUT_SECONDS", 30)),
            suppress=bool(config.get("MAIL_SUPPRESS_SEND", False)),
        )

    def build(self, message: MailMessage) -> EmailMessage:
        email = EmailMessage()
        email["From"] = self.sender
        email["To"] = formataddr((message.to_name, message.to)) if message.to_name else message.to
        email["Subject"] = message.subject
        email.set_content("This message requires an HTML capable mail client.")
        email.add_alternative(message.html, subtype="html")
        return email

    def send(self, message: MailMessage) -> None:
        email = self.build(message)

        if self.suppress:
            current_app.logger.info("Mail suppressed: to=%s subject=%r", message.to, message.subject)
            return

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password or "")
                smtp.send_message(email)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"Failed to send mail to {message.to}: {e}") from e


def init_mailer(app: Flask) -> None:
    app.extensions["mailer"] = SmtpMailer.from_config(app.config)


def get_mailer():
    return current_app.extensions["mailer"]


def render_email(template_name: str, **context) -> str:
    return render_template(f"emails/{template_name}", **context)


def send_mail(to: str, subject: str, html: str, to_name: str | None = None) -> None:
    """Send through the application's mailer. Raises on delivery failure."""
    get_mailer().send(MailMessage(to=to, subject=subject, html=html, to_name=to_name))
