"""Development mail sender that logs messages instead of sending them."""

import structlog

from domain.entities.notification import MailMessage

logger = structlog.get_logger()


class ConsoleMailSender:
    """IMailSender that writes each message to the log."""

    def __init__(self, mail_from: str) -> None:
        self._mail_from = mail_from
        self.outbox: list[MailMessage] = []

    async def send(self, message: MailMessage) -> None:
        self.outbox.append(message)
        logger.info(
            "development_email",
            mail_from=self._mail_from,
            to=message.to,
            subject=message.subject,
            text=message.text_body,
        )
