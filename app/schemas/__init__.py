from app.schemas.disable import DisableEntry, DisableReason
from app.schemas.session import ConversationStage, LanguageCode, Product, SessionStats, UserSession
from app.schemas.webhook import InboundMessage, WebhookResponse

__all__ = [
    "ConversationStage",
    "DisableEntry",
    "DisableReason",
    "InboundMessage",
    "LanguageCode",
    "Product",
    "SessionStats",
    "UserSession",
    "WebhookResponse",
]
