"""Bot-sent messages: delivery plus fingerprints used to tell bot echoes from the owner typing."""

import hashlib
from datetime import datetime, timedelta
from typing import Optional

from app.logging_config import get_logger
from app.services.clock import Clock
from app.services.transport_service import WhatsAppTransport

logger = get_logger("message_service")

# Degraded fallback: a human typing one of these is classified as the bot.
BOT_SIGNATURE_PHRASES = ("Wynwood baby!!!", "Andy's Don Cash", "🤖")


def _text_fingerprint(chat_id: str, text: str) -> str:
    return hashlib.sha256(f"{chat_id}\n{text.strip()}".encode("utf-8")).hexdigest()


class SentMessageLog:
    """Remembers keys for a short window."""

    def __init__(self, clock: Clock, ttl_seconds: int = 60):
        self.clock = clock
        self.ttl = timedelta(seconds=ttl_seconds)
        self._expires: dict[str, datetime] = {}

    def _prune(self) -> None:
        now = self.clock.now()
        for key in [k for k, expires in self._expires.items() if expires <= now]:
            del self._expires[key]

    def remember(self, key: str) -> None:
        self._prune()
        self._expires[key] = self.clock.now() + self.ttl

    def __contains__(self, key: str) -> bool:
        self._prune()
        return key in self._expires

    def __len__(self) -> int:
        self._prune()
        return len(self._expires)


class BotMessenger:
    def __init__(self, transport: WhatsAppTransport, clock: Clock, ttl_seconds: int = 60):
        self.transport = transport
        self.sent_ids = SentMessageLog(clock, ttl_seconds)
        self.sent_texts = SentMessageLog(clock, ttl_seconds)

    async def send(self, chat_id: str, text: str) -> Optional[str]:
        """Send as the bot. Raises TransportError on failure."""
        # The gateway can echo the message back before send_text returns its id.
        self.sent_texts.remember(_text_fingerprint(chat_id, text))
        message_id = await self.transport.send_text(chat_id, text)
        if message_id:
            self.sent_ids.remember(message_id)
        logger.info(f"Bot message sent: chat={chat_id}, message_id={message_id}")
        return message_id

    def was_bot_generated(self, message_id: Optional[str], text: Optional[str], chat_id: Optional[str] = None) -> bool:
        if message_id and message_id in self.sent_ids:
            return True
        if chat_id and text and _text_fingerprint(chat_id, text) in self.sent_texts:
            return True
        return matches_bot_signature(text)


def matches_bot_signature(text: Optional[str]) -> bool:
    if not text:
        return False
    return any(phrase in text for phrase in BOT_SIGNATURE_PHRASES)
