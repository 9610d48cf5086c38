# labdesk/notifications/email.py
import logging
import os
import smtplib
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from functools import lru_cache
from jinja2 import Environment, FileSystemLoader, select_autoescape
from labdesk.config import settings

logger = logging.getLogger(__name__)

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "..", "templates")

_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html"]),
)


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    html: str


def render_email(template: str, subject: str, to: str, **context) -> OutgoingEmail:
    context.setdefault("lab_name", settings.LAB_NAME)
    context.setdefault("year", datetime.utcnow().year)
    html = _env.get_template(f"email/{template}").render(**context)
    return OutgoingEmail(to=to, subject=f"{subject} - {settings.LAB_NAME}", html=html)


class Mailer:
    """
    Sends HTML mail through the configured SMTP relay.
    Delivery errors propagate so the calling task can retry.
    """

    def __init__(self, host, port, user, password, use_tls, sender):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.sender = sender

    @property
    def configured(self) -> bool:
        return bool(self.host)

    def send(self, message: OutgoingEmail) -> bool:
        if not self.configured:
            logger.info("SMTP not configured; skipping email to %s (%s)", message.to, message.subject)
            return False
        mail = EmailMessage()
        mail["From"] = self.sender
        mail["To"] = message.to
        mail["Subject"] = message.subject
        mail.set_content("This message requires an HTML capable mail client.")
        mail.add_alternative(message.html, subtype="html")
        with smtplib.SMTP(self.host, self.port, timeout=15) as server:
            server.ehlo()
            if self.use_tls:
                server.starttls()
                server.ehlo()
            if self.user:
                server.login(self.user, self.password)
            server.send_message(mail)
        logger.info("Email sent to %s (%s)", message.to, message.subject)
        return True


@lru_cache(maxsize=1)
def get_mailer() -> Mailer:
    # Built once per process on first use.
    return Mailer(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        user=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        use_tls=settings.SMTP_USE_TLS,
        sender=f'"{settings.LAB_NAME}" <{settings.ADMIN_EMAIL}>',
    )


def otp_email(to: str, code: str, purpose: str) -> OutgoingEmail:
    minutes = settings.OTP_EXPIRE_MINUTES
    if purpose == "email_verification":
        subject, action = "Verify Your Email", "verify your email address"
    elif purpose == "password_reset":
        subject, action = "Password Reset OTP", "reset your password"
        minutes = settings.PASSWORD_RESET_OTP_EXPIRE_MINUTES
    else:
        subject, action = "Your Login OTP", "sign in"
    return render_email("otp.html", subject, to, otp=code, action=action, minutes=minutes)
