"""Transactional email: invitations and password recovery."""
import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from typing import List, NamedTuple

from seshprep.config import settings
from seshprep.errors import EmailDeliveryError

logger = logging.getLogger(__name__)


class OutgoingEmail(NamedTuple):
    to_email: str
    subject: str
    html_content: str
    text_content: str


class Mailer:
    """Delivers one message or raises ``EmailDeliveryError``."""

    def send(self, message: OutgoingEmail) -> None:
        raise NotImplementedError


class SmtpMailer(Mailer):
    def __init__(self, host: str, port: int, username: str, password: str,
                 use_tls: bool, from_email: str, from_name: str):
        self.smtp_host = host
        self.smtp_port = port
        self.smtp_username = username
        self.smtp_password = password
        self.smtp_use_tls = use_tls
        self.from_email = from_email
        self.from_name = from_name

    def send(self, message: OutgoingEmail) -> None:
        if not self.smtp_username or not self.smtp_password:
            logger.error("SMTP credentials not configured")
            raise EmailDeliveryError("Email delivery is not configured")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = message.to_email
        msg["Date"] = formatdate(localtime=True)
        msg["Reply-To"] = self.from_email
        msg["Message-ID"] = make_msgid(domain=self.from_email.split("@")[-1])
        msg.attach(MIMEText(message.text_content, "plain", "utf-8"))
        msg.attach(MIMEText(message.html_content, "html", "utf-8"))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                if self.smtp_use_tls:
                    server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)
        except smtplib.SMTPAuthenticationError as exc:
            logger.error("SMTP authentication failed: %s", exc)
            raise EmailDeliveryError("Email provider rejected our credentials") from exc
        except smtplib.SMTPRecipientsRefused as exc:
            logger.error("SMTP rejected recipient %s", message.to_email)
            raise EmailDeliveryError(f"Email address {message.to_email} was rejected") from exc
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Error sending email to %s: %s", message.to_email, exc)
            raise EmailDeliveryError(f"Failed to send email to {message.to_email}") from exc

        logger.info("Email '%s' sent to %s", message.subject, message.to_email)


class ConsoleMailer(Mailer):
    """Development mailer: logs the message and keeps it in ``outbox``."""

    def __init__(self):
        self.outbox: List[OutgoingEmail] = []

    def send(self, message: OutgoingEmail) -> None:
        self.outbox.append(message)
        logger.info("Email to %s: %s\n%s", message.to_email, message.subject, message.text_content)


def build_mailer() -> Mailer:
    backend = settings.EMAIL_BACKEND.lower()
    if backend == "smtp":
        return SmtpMailer(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
            from_email=settings.SMTP_FROM_EMAIL,
            from_name=settings.SMTP_FROM_NAME,
        )
    if backend == "console":
        return ConsoleMailer()
    raise ValueError(f"Unknown EMAIL_BACKEND {backend!r}")


def invitation_email(to_email: str, target_title: str, role: str, inviter_name: str,
                     accept_url: str) -> OutgoingEmail:
    title = html.escape(target_title)
    inviter = html.escape(inviter_name)
    role_label = html.escape(role)
    subject = f'You\'ve been invited to collaborate on "{target_title}"'
    html_content = f"""
<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="font-size: 24px;">You've been invited to {html.escape(settings.APP_NAME)}!</h1>
  <p><strong>{inviter}</strong> has invited you to collaborate on <strong>"{title}"</strong>
     as a <strong>{role_label}</strong>.</p>
  <a href="{html.escape(accept_url)}"
     style="display: inline-block; background: #2563eb; color: white; padding: 12px 24px;">
    Accept Invitation &amp; Sign In
  </a>
  <p style="color: #888;">If you don't have an account yet, you'll be prompted to create one.
     If you didn't expect this invitation, you can safely ignore this email.</p>
</div>
""".strip()
    text_content = (
        f"{inviter_name} has invited you to collaborate on \"{target_title}\" as a {role}.\n\n"
        f"Accept the invitation: {accept_url}\n\n"
        "If you didn't expect this invitation, you can safely ignore this email."
    )
    return OutgoingEmail(to_email, subject, html_content, text_content)


def recovery_email(to_email: str, reset_url: str, otp: str, ttl_minutes: int) -> OutgoingEmail:
    subject = f"Reset your {settings.APP_NAME} password"
    html_content = f"""
<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="font-size: 24px;">Reset your password</h1>
  <p><a href="{html.escape(reset_url)}">Choose a new password</a></p>
  <p>Or enter this code: <strong>{html.escape(otp)}</strong></p>
  <p style="color: #888;">The link expires in {ttl_minutes} minutes.
     If you didn't request a reset, ignore this email.</p>
</div>
""".strip()
    text_content = (
        f"Choose a new password: {reset_url}\n"
        f"Or enter this code: {otp}\n\n"
        f"The link expires in {ttl_minutes} minutes. If you didn't request a reset, ignore this email."
    )
    return OutgoingEmail(to_email, subject, html_content, text_content)
