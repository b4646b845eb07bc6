from app.services.conversation_service import ConversationService, TurnAction, TurnResult
from app.services.disable_registry import DisableRegistry
from app.services.session_store import SessionStore
from app.services.state_machine import Intent, MessageKind, TurnDecision, decide
