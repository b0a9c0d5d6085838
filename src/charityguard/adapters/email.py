"""ABOUTME: Email adapters used to deliver one-time codes
ABOUTME: SMTP for real delivery, console logging for development and tests"""

import logging
import smtplib
from abc import ABC, abstractmethod
from email.mime.text import MIMEText
from email.utils import formataddr

from charityguard.config import EmailCfg

logger = logging.getLogger(__name__)


class EmailAdapter(ABC):
    """Abstract base class for email sending adapters."""

    @abstractmethod
    def send_email(self, to: str, subject: str, text_body: str) -> bool:
        """Send a plain text email. Returns True if the message was handed over successfully."""
        raise NotImplementedError


class ConsoleEmailAdapter(EmailAdapter):
    """Logs emails instead of sending them."""

    def __init__(self, from_email: str = "noreply@charityguard.local") -> None:
        self.from_email = from_email
        self.sent: list[tuple[str, str, str]] = []

    def send_email(self, to: str, subject: str, text_body: str) -> bool:
        self.sent.append((to, subject, text_body))
        logger.info(
            "EMAIL (Console):\n"
            f"  From: {self.from_email}\n"
            f"  To: {to}\n"
            f"  Subject: {subject}\n"
            f"  Body: {text_body}"
        )
        return True


class SMTPEmailAdapter(EmailAdapter):
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = True,
        default_from_email: str = "",
        default_from_name: str = "",
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.default_from_email = default_from_email
        self.default_from_name = default_from_name

    def send_email(self, to: str, subject: str, text_body: str) -> bool:
        try:
            msg = MIMEText(text_body, "plain", "utf-8")
            msg["Subject"] = subject
            msg["From"] = formataddr((self.default_from_name, self.default_from_email))
            msg["To"] = to

            with smtplib.SMTP(self.host, self.port, timeout=10) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(self.default_from_email, [to], msg.as_string())

            logger.info("Email sent successfully")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP error sending email: {e}")
            return False


def get_email_adapter(cfg: EmailCfg) -> EmailAdapter:
    if cfg.backend == "smtp":
        return SMTPEmailAdapter(
            host=cfg.host,
            port=cfg.port,
            username=cfg.username,
            password=cfg.password,
            use_tls=cfg.use_tls,
            default_from_email=cfg.from_email,
            default_from_name=cfg.from_name,
        )
    return ConsoleEmailAdapter(from_email=cfg.from_email)
