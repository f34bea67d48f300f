"""Profile domain entity."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID, uuid4


@dataclass
class Profile:
    """An application user as far as notifications are concerned.

    Notification recipients are stored as profile ids and resolved to
    addresses at delivery time.
    """

    email: str
    username: str
    id: UUID = field(default_factory=uuid4)
    role: str = "user"
    first_name: str | None = None
    last_name: str | None = None
    is_active: bool = True
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def display_name(self) -> str:
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return self.username or full or self.email
