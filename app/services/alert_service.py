"""Operator alerts for the Don Cash bot, posted to a Telegram chat.

Alerts are reserved for conditions that need a human: chat state that could
not be read or written, and a monthly cleanup that refused to run.
"""

import os
from typing import Optional

import httpx

from app.logging_config import get_logger

logger = get_logger("alert_service")

ALERT_BOT_TOKEN = os.environ.get("ALERT_BOT_TOKEN")
ALERT_CHAT_ID = os.environ.get("ALERT_CHAT_ID")
ALERT_SOURCE = os.environ.get("ALERT_SOURCE", "doncash-bot")

TELEGRAM_SEND_URL = "https://api.telegram.org/bot{token}/sendMessage"

LEVEL_EMOJI = {"INFO": "ℹ️", "WARNING": "⚠️", "ERROR": "❌", "CRITICAL": "🔥"}


def format_alert(level: str, message: str, context: Optional[dict] = None) -> str:
    lines = [f"{LEVEL_EMOJI.get(level, '📢')} *{level}* [{ALERT_SOURCE}]", "", message]
    if context:
        details = "\n".join(f"  {key}: {value}" for key, value in context.items())
        lines += ["", "```", details, "```"]
    return "\n".join(lines)


def send_alert(level: str, message: str, context: Optional[dict] = None) -> bool:
    """Post an alert to the operator chat.

    Returns False when no operator chat is configured or Telegram did not
    accept the message; alerting never raises into the caller.
    """
    if not (ALERT_BOT_TOKEN and ALERT_CHAT_ID):
        logger.warning(
            "Alert dropped, no operator chat configured",
            extra={"context": {"level": level, "alert": message}},
        )
        return False

    payload = {
        "chat_id": ALERT_CHAT_ID,
        "text": format_alert(level, message, context),
        "parse_mode": "Markdown",
    }
    try:
        with httpx.Client(timeout=10) as client:
            response = client.post(TELEGRAM_SEND_URL.format(token=ALERT_BOT_TOKEN), json=payload)
    except Exception as e:
        logger.error(f"Failed to send alert: {e}")
        return False

    if response.status_code != 200:
        logger.error(f"Telegram rejected alert with status {response.status_code}")
        return False
    return True


def alert_persistence_failure(store_name: str, operation: str, error: Exception) -> bool:
    """State could not be read or written; in-memory state stays authoritative."""
    return send_alert("CRITICAL", f"State {operation} failed", {"store": store_name, "error": str(error)})


def alert_cleanup_aborted(reason: str) -> bool:
    return send_alert("WARNING", "Inactive user cleanup skipped, nothing was deleted", {"reason": reason})
