"""Outbound WhatsApp delivery through the HTTP gateway."""

from typing import Optional

import httpx

from app.logging_config import get_logger

logger = get_logger("transport_service")


class TransportError(Exception):
    """Message could not be handed to the gateway."""


def _extract_message_id(payload: dict) -> Optional[str]:
    for key in ("message_id", "messageId", "id"):
        value = payload.get(key)
        if value:
            return str(value)
    key = payload.get("key")
    if isinstance(key, dict) and key.get("id"):
        return str(key["id"])
    data = payload.get("data")
    if isinstance(data, dict):
        return _extract_message_id(data)
    return None


class WhatsAppTransport:
    def __init__(
        self,
        api_url: str,
        token: Optional[str],
        instance_id: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.instance_id = instance_id
        self.timeout = timeout

    async def send_text(self, chat_id: str, text: str) -> Optional[str]:
        """Send a text message. Returns the gateway message id when it reports one."""
        if not self.token:
            raise TransportError("Transport token is missing (TRANSPORT_TOKEN env var not set)")
        if not chat_id or not text:
            raise TransportError("send_text requires chat_id and text")

        params = {"token": self.token, "jid": chat_id, "msg": text}
        if self.instance_id:
            params["instance_id"] = self.instance_id

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.api_url}/send-text", params=params)
        except httpx.HTTPError as e:
            raise TransportError(f"Gateway request failed: {e}") from e

        logger.info(f"Gateway response: status={response.status_code}, jid={chat_id}, body={response.text[:200]}")
        if response.status_code != 200:
            raise TransportError(f"Gateway returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            return None
        if isinstance(payload, dict) and payload.get("success") is False:
            raise TransportError(f"Gateway rejected message: {payload.get('error') or payload}")
        return _extract_message_id(payload) if isinstance(payload, dict) else None
