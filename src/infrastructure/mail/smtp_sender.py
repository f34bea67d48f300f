"""SMTP mail sender."""

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import structlog

from core.exceptions import MailDeliveryError
from domain.entities.notification import MailMessage

logger = structlog.get_logger()


class SMTPMailSender:
    """IMailSender backed by ``smtplib``, run off the event loop."""

    def __init__(
        self,
        host: str,
        port: int,
        mail_from: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._mail_from = mail_from
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    def _build(self, message: MailMessage) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = self._mail_from
        msg["To"] = message.to
        # Clients render the last part they understand, so HTML goes last.
        msg.attach(MIMEText(message.text_body, "plain", "utf-8"))
        msg.attach(MIMEText(message.html_body, "html", "utf-8"))
        return msg

    def _send_sync(self, message: MailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._use_tls:
                server.starttls()
            if self._username and self._password:
                server.login(self._username, self._password)
            server.send_message(self._build(message), to_addrs=[message.to])

    async def send(self, message: MailMessage) -> None:
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(message.to, str(e)) from e

        logger.debug("smtp_message_sent", to=message.to, subject=message.subject)
