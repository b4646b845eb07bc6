from typing import Optional

import httpx

from app.logging_config import get_logger

logger = get_logger("telegram_service")

TELEGRAM_API = "https://api.telegram.org/bot{token}/{method}"


class TelegramService:
    """Bot API client used to reach the operators (credential challenges, link status)."""

    def __init__(self, bot_token: str, timeout: float = 30.0):
        self.bot_token = bot_token
        self.timeout = timeout

    def _call(self, client: httpx.Client, method: str, **request) -> dict:
        try:
            response = client.post(TELEGRAM_API.format(token=self.bot_token, method=method), **request)
            return response.json()
        except Exception as e:
            logger.error(f"Telegram API error: {e}")
            return {"ok": False, "description": str(e)}

    def _text_request(self, chat_id: str, text: str, parse_mode: Optional[str]) -> dict:
        payload = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        return {"json": payload}

    def _photo_request(self, chat_id: str, photo: bytes, caption: str, parse_mode: Optional[str]) -> dict:
        fields = {"chat_id": chat_id, "caption": caption}
        if parse_mode:
            fields["parse_mode"] = parse_mode
        return {"data": fields, "files": {"photo": ("qr.png", photo, "image/png")}}

    def send_message(self, chat_id: str, text: str, parse_mode: Optional[str] = "Markdown") -> dict:
        with httpx.Client(timeout=self.timeout) as client:
            return self._call(client, "sendMessage", **self._text_request(chat_id, text, parse_mode))

    def _broadcast(self, chat_ids: list[str], method: str, build) -> int:
        delivered = 0
        with httpx.Client(timeout=self.timeout) as client:
            for chat_id in chat_ids:
                result = self._call(client, method, **build(chat_id))
                if result.get("ok"):
                    delivered += 1
                else:
                    logger.warning(
                        "Telegram delivery failed",
                        extra={"context": {"telegram_chat": chat_id, "method": method, "error": result.get("description")}},
                    )
        return delivered

    def broadcast(self, chat_ids: list[str], text: str, parse_mode: Optional[str] = "Markdown") -> int:
        """Send the same text to several chats over one connection. Returns how many accepted it."""
        return self._broadcast(chat_ids, "sendMessage", lambda chat_id: self._text_request(chat_id, text, parse_mode))

    def broadcast_photo(
        self, chat_ids: list[str], photo: bytes, caption: str, parse_mode: Optional[str] = "Markdown"
    ) -> int:
        return self._broadcast(
            chat_ids, "sendPhoto", lambda chat_id: self._photo_request(chat_id, photo, caption, parse_mode)
        )
