"""Mail sender protocol (the delivery channel)."""

from typing import Protocol

from domain.entities.notification import MailMessage


class IMailSender(Protocol):
    """Sends one message to one recipient."""

    async def send(self, message: MailMessage) -> None:
        """Deliver ``message``.

        Raises:
            MailDeliveryError: The transport failed for this recipient.
        """
        ...
