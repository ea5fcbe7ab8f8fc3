from abc import ABC, abstractmethod
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)


class NotificationProvider(ABC):
    """Outbound channel for the email copy of an in-app notification."""

    name = "base"

    @abstractmethod
    async def send_email(self, to: str, subject: str, body: str, meta: Optional[Dict] = None) -> Dict:
        raise NotImplementedError()


class LogProvider(NotificationProvider):
    """Writes emails to the log instead of delivering them (dev/testing)."""

    name = "log"

    async def send_email(self, to: str, subject: str, body: str, meta: Optional[Dict] = None) -> Dict:
        logger.info("email to=%s subject=%s booking=%s", to, subject, (meta or {}).get("booking_id"))
        logger.debug("Email body: %s", body)
        return {"status": "sent", "provider": self.name}


PROVIDERS = {
    LogProvider.name: LogProvider,
}


def get_provider(name: str = "log") -> NotificationProvider:
    cls = PROVIDERS.get((name or "log").lower())
    if cls is None:
        raise ValueError(f"Unknown notification provider: {name}")
    return cls()
