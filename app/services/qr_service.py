"""Credential challenge (pairing QR) forwarding and freshness tracking.

The transport asks for re-authentication by handing us a challenge string. We
render it as a scannable PNG, keep the latest one with its timestamp and forward
it to the enabled channels.
"""

import asyncio
import base64
import io
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

import segno

from app.logging_config import get_logger
from app.schemas.qr import ChallengeStatus, CredentialChallenge
from app.services.clock import Clock
from app.services.email_service import EmailService
from app.services.telegram_service import TelegramService

logger = get_logger("qr_service")

TELEGRAM_CAPTION = "🔄 *Reconexión requerida*\n\nEscanea este código QR para reconectar el bot de WhatsApp.\n⏱️ Válido por {seconds} segundos."
EMAIL_SUBJECT = "Código QR para reconexión de WhatsApp Bot"
EMAIL_TEXT = (
    "Se ha generado un nuevo código QR para reconectar el bot de WhatsApp. "
    "Escanéalo desde la app para reactivar la conexión."
)
QR_FILENAME = "whatsapp-qr.png"


def render_qr_png(data: str, scale: int = 8, border: int = 4) -> bytes:
    qr = segno.make(data, error="m")
    buffer = io.BytesIO()
    qr.save(buffer, kind="png", scale=scale, border=border)
    return buffer.getvalue()


def png_data_url(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


class ChallengeChannel(ABC):
    name: str

    @abstractmethod
    def deliver(self, challenge: CredentialChallenge, lifetime_seconds: int) -> bool:
        pass

    @abstractmethod
    def notify_status(self, connected: bool) -> bool:
        pass


class TelegramChallengeChannel(ChallengeChannel):
    name = "telegram"

    def __init__(self, telegram: TelegramService, chat_ids: list[str]):
        self.telegram = telegram
        self.chat_ids = chat_ids

    def deliver(self, challenge: CredentialChallenge, lifetime_seconds: int) -> bool:
        caption = TELEGRAM_CAPTION.format(seconds=lifetime_seconds)
        if challenge.png:
            return self.telegram.broadcast_photo(self.chat_ids, challenge.png, caption) > 0
        # Rendering failed; send the raw pairing string.
        return self.telegram.broadcast(self.chat_ids, f"{caption}\n\n`{challenge.data}`") > 0

    def notify_status(self, connected: bool) -> bool:
        text = "✅ Bot de WhatsApp conectado" if connected else "⚠️ Bot de WhatsApp desconectado"
        return self.telegram.broadcast(self.chat_ids, text) > 0


class EmailChallengeChannel(ChallengeChannel):
    name = "email"

    def __init__(self, email: EmailService, recipients: list[str]):
        self.email = email
        self.recipients = recipients

    def deliver(self, challenge: CredentialChallenge, lifetime_seconds: int) -> bool:
        body = f"{EMAIL_TEXT}\n\nVálido por {lifetime_seconds} segundos.\n"
        if not challenge.png:
            return self.email.send(self.recipients, EMAIL_SUBJECT, f"{body}\n{challenge.data}\n")
        attachment = (QR_FILENAME, challenge.png, "image/png")
        return self.email.send(self.recipients, EMAIL_SUBJECT, body, attachments=[attachment])

    def notify_status(self, connected: bool) -> bool:
        subject = "WhatsApp Bot conectado" if connected else "WhatsApp Bot desconectado"
        return self.email.send(self.recipients, subject, subject)


class CredentialChallengeManager:
    def __init__(self, clock: Clock, channels: Optional[list[ChallengeChannel]] = None, lifetime_seconds: int = 60):
        self.clock = clock
        self.channels = channels or []
        self.lifetime = timedelta(seconds=lifetime_seconds)
        self.current: Optional[CredentialChallenge] = None
        self.connected: Optional[bool] = None

    def _is_fresh(self, now: datetime) -> bool:
        return self.current is not None and now - self.current.received_at < self.lifetime

    async def on_challenge(self, data: str) -> dict[str, bool]:
        """Store the challenge and forward it. Returns per-channel delivery results."""
        try:
            png = render_qr_png(data)
        except ValueError as e:
            logger.error(f"QR image could not be rendered: {e}")
            png = None
        self.current = CredentialChallenge(data=data, received_at=self.clock.now(), png=png)
        self.connected = False
        logger.info(f"Credential challenge received, forwarding to {len(self.channels)} channels")

        results: dict[str, bool] = {}
        seconds = int(self.lifetime.total_seconds())
        for channel in self.channels:
            try:
                results[channel.name] = await asyncio.to_thread(channel.deliver, self.current, seconds)
            except Exception as e:
                logger.error(f"Challenge delivery via {channel.name} failed: {e}")
                results[channel.name] = False
        return results

    async def notify_connection_status(self, connected: bool) -> None:
        self.connected = connected
        if connected:
            self.current = None
        for channel in self.channels:
            try:
                await asyncio.to_thread(channel.notify_status, connected)
            except Exception as e:
                logger.error(f"Status notification via {channel.name} failed: {e}")

    def get_status(self) -> ChallengeStatus:
        now = self.clock.now()
        if self.current is None:
            return ChallengeStatus(has_challenge=False, valid=False, connected=self.connected)
        age = now - self.current.received_at
        remaining = max(timedelta(0), self.lifetime - age)
        return ChallengeStatus(
            has_challenge=True,
            valid=self._is_fresh(now),
            connected=self.connected,
            received_at=self.current.received_at,
            age_seconds=int(age.total_seconds()),
            expires_in_seconds=int(remaining.total_seconds()),
        )

    def current_if_fresh(self) -> Optional[CredentialChallenge]:
        return self.current if self._is_fresh(self.clock.now()) else None


def build_challenge_channels(settings, telegram: Optional[TelegramService] = None) -> list[ChallengeChannel]:
    channels: list[ChallengeChannel] = []
    if settings.qr_telegram_enabled and settings.telegram_bot_token and settings.telegram_chat_id_list:
        channels.append(
            TelegramChallengeChannel(telegram or TelegramService(settings.telegram_bot_token), settings.telegram_chat_id_list)
        )
    if settings.qr_email_enabled and settings.qr_email_recipients:
        email = EmailService(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.qr_email_from or settings.smtp_user or "bot@localhost",
            user=settings.smtp_user,
            password=settings.smtp_password,
            use_ssl=settings.smtp_use_ssl,
        )
        channels.append(EmailChallengeChannel(email, settings.qr_email_recipients))
    return channels
