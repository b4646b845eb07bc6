from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class InboundMessage(BaseModel):
    """Chat event delivered by the WhatsApp gateway."""

    model_config = ConfigDict(populate_by_name=True)

    chat_id: str = Field(validation_alias=AliasChoices("chat_id", "chatId", "remoteJid", "jid"))
    text: Optional[str] = Field(default=None, validation_alias=AliasChoices("text", "message", "body"))
    from_me: bool = Field(default=False, validation_alias=AliasChoices("from_me", "fromMe"))
    message_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("message_id", "messageId", "id"))


class WebhookResponse(BaseModel):
    success: bool
    action: str
    reply: Optional[str] = None
    error: Optional[str] = None
