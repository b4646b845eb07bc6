"""One inbound or outgoing chat event, end to end."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.logging_config import get_chat_logger
from app.schemas.webhook import InboundMessage
from app.services.business_hours import BusinessHours
from app.services.command_service import OwnerCommandRouter, user_id_from_chat
from app.services.disable_registry import DisableRegistry
from app.services.message_catalog import MessageCatalog
from app.services.message_service import BotMessenger
from app.services.nlu import NLUError, NLUProvider
from app.services.session_store import SessionStore
from app.services.state_machine import COMPLETION_RESET, Intent, decide
from app.services.transport_service import TransportError


class TurnAction(str, Enum):
    IGNORED_GROUP = "ignored_group"
    IGNORED_EMPTY = "ignored_empty"
    OWNER_COMMAND = "owner_command"
    OWNER_INTERVENTION = "owner_intervention"
    CHAT_DISABLED = "chat_disabled"
    REPLIED = "replied"
    ERROR = "error"
    BOT_ECHO = "bot_echo"
    MANUAL_INTERVENTION = "manual_intervention"


@dataclass
class TurnResult:
    action: TurnAction
    reply: Optional[str] = None
    intent: Optional[str] = None
    error: Optional[str] = None


class ConversationService:
    def __init__(
        self,
        sessions: SessionStore,
        registry: DisableRegistry,
        commands: OwnerCommandRouter,
        nlu: NLUProvider,
        messenger: BotMessenger,
        catalog: MessageCatalog,
        business_hours: BusinessHours,
        group_suffix: str = "@g.us",
        default_language: str = "es",
    ):
        self.sessions = sessions
        self.registry = registry
        self.commands = commands
        self.nlu = nlu
        self.messenger = messenger
        self.catalog = catalog
        self.business_hours = business_hours
        self.group_suffix = group_suffix
        self.default_language = default_language

    def is_group(self, chat_id: str) -> bool:
        return chat_id.endswith(self.group_suffix)

    async def _apologize(self, chat_id: str, language: Optional[str], log) -> None:
        try:
            await self.messenger.send(chat_id, self.catalog.error(language))
        except TransportError as e:
            log.error(f"Apology not delivered: {e}")

    async def handle_incoming(self, message: InboundMessage) -> TurnResult:
        chat_id = message.chat_id
        if self.is_group(chat_id):
            return TurnResult(TurnAction.IGNORED_GROUP)

        log = get_chat_logger("conversation", chat_id)
        user_id = user_id_from_chat(chat_id)
        text = (message.text or "").strip()

        if self.commands.is_owner(user_id):
            if self.commands.is_command(text):
                reply = await self.commands.handle_command(chat_id, text)
                return TurnResult(TurnAction.OWNER_COMMAND, reply=reply)
            if self.commands.detect_owner_message(chat_id, text):
                return TurnResult(TurnAction.OWNER_INTERVENTION)

        if self.registry.is_disabled(chat_id):
            log.info("Bot disabled for chat, message dropped")
            return TurnResult(TurnAction.CHAT_DISABLED)

        if not text:
            return TurnResult(TurnAction.IGNORED_EMPTY)

        session = self.sessions.get(user_id)
        contexts = [session.current_context.value] if session.current_context.value else []

        try:
            nlu_result = await self.nlu.detect_intent(
                user_id,
                text,
                session.language_code.value if session.language_code else self.default_language,
                contexts,
            )
        except NLUError as e:
            log.error(f"Intent detection failed: {e}")
            await self._apologize(chat_id, session.language, log)
            return TurnResult(TurnAction.ERROR, error=str(e))

        intent = Intent.from_name(nlu_result.intent_name)
        decision = decide(
            session,
            intent,
            nlu_result.parameters,
            text,
            is_open=self.business_hours.is_open(),
        )
        log.info(
            "Turn decided",
            context={
                "intent": nlu_result.intent_name,
                "stage": session.current_context.value,
                "reply": decision.reply.kind.value,
                "completes": decision.mark_completed,
            },
        )

        language = decision.changes.get("language_code") or session.language_code
        language = language.value if language else None
        # Closing lines depend on the business-hours reading at send time.
        reply_text = self.catalog.render(decision.reply, language, is_open=self.business_hours.is_open())

        try:
            await self.messenger.send(chat_id, reply_text)
        except TransportError as e:
            log.error(f"Reply not delivered, session left unchanged: {e}")
            await self._apologize(chat_id, language, log)
            return TurnResult(TurnAction.ERROR, intent=nlu_result.intent_name, error=str(e))

        changes = dict(decision.changes)
        if decision.mark_completed:
            self.registry.mark_completed(chat_id)
            changes.update(COMPLETION_RESET)
        self.sessions.update(user_id, **changes)

        return TurnResult(TurnAction.REPLIED, reply=reply_text, intent=nlu_result.intent_name)

    async def handle_outgoing(self, message: InboundMessage) -> TurnResult:
        """Messages sent from the monitored account: either bot echoes or a human typing."""
        chat_id = message.chat_id
        if self.is_group(chat_id):
            return TurnResult(TurnAction.IGNORED_GROUP)

        text = (message.text or "").strip()
        if self.messenger.was_bot_generated(message.message_id, text, chat_id):
            return TurnResult(TurnAction.BOT_ECHO)

        log = get_chat_logger("conversation", chat_id)
        log.info("Manual intervention detected")
        self.registry.register_manual_intervention(chat_id)

        if self.commands.is_command(text):
            reply = await self.commands.handle_command(chat_id, text)
            return TurnResult(TurnAction.OWNER_COMMAND, reply=reply)
        return TurnResult(TurnAction.MANUAL_INTERVENTION)
