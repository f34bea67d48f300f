"""Mail sender implementations."""

from core.config import Settings
from domain.services.mail_sender import IMailSender
from infrastructure.mail.console_sender import ConsoleMailSender
from infrastructure.mail.smtp_sender import SMTPMailSender


def build_mail_sender(config: Settings) -> IMailSender:
    """Pick the mail sender configured by ``MAIL_BACKEND``."""
    if config.mail_backend == "smtp":
        return SMTPMailSender(
            host=config.smtp_host,
            port=config.smtp_port,
            mail_from=config.mail_from,
            username=config.smtp_username,
            password=config.smtp_password,
            use_tls=config.smtp_use_tls,
            timeout=config.smtp_timeout_seconds,
        )
    return ConsoleMailSender(mail_from=config.mail_from)


__all__ = ["ConsoleMailSender", "SMTPMailSender", "build_mail_sender"]
