"""Conversation state machine.

`decide` is a total function of (session, intent, parameters, text, business
hours flag). It never raises for business conditions: unresolved languages and
unknown products are ordinary rows of the transition table.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from app.schemas.session import ConversationStage, LanguageCode, Product, UserSession


class Intent(str, Enum):
    WELCOME = "Default Welcome Intent"
    LANGUAGE = "lenguaje"
    PRODUCT_SELECTION = "ProductSelection"
    FALLBACK = "Default Fallback Intent"
    PROCESS_COMPLETED = "ProcessCompleted"
    UNKNOWN = "unknown"

    @classmethod
    def from_name(cls, name: Optional[str]) -> "Intent":
        for intent in cls:
            if intent.value == name:
                return intent
        return cls.UNKNOWN


class MessageKind(str, Enum):
    WELCOME = "welcome"
    LANGUAGE_PROMPT = "language_prompt"
    BUSINESS_MENU = "business_menu"
    OUT_OF_HOURS = "out_of_hours"
    PRODUCT_INFO = "product_info"
    FALLBACK = "fallback"
    DEFAULT = "default"
    FAREWELL = "farewell"
    ERROR = "error"


LANGUAGE_TOKENS = {
    LanguageCode.ES: ("1", "español", "espanol", "spanish"),
    LanguageCode.EN: ("2", "english", "ingles", "inglés"),
}

PRODUCT_TOKENS = {
    Product.WATCHES: ("1", "relojes", "watches"),
    Product.DIAMONDS: ("2", "diamantes", "diamonds"),
    Product.GOLD: ("3", "oro", "gold", "plata", "silver"),
}

LANGUAGE_PARAMETERS = ("number", "language")
PRODUCT_PARAMETERS = ("number", "product", "language")

# Applied on top of a decision that completes the process, in the same turn.
COMPLETION_RESET = {
    "current_context": ConversationStage.CLEARED,
    "process_completed": False,
}


@dataclass(frozen=True)
class Reply:
    kind: MessageKind
    product: Optional[Product] = None


@dataclass
class TurnDecision:
    reply: Reply
    changes: dict[str, Any] = field(default_factory=dict)
    mark_completed: bool = False


def _token(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(int(value)) if float(value).is_integer() else None
    if isinstance(value, str):
        token = value.strip().lower()
        return token or None
    return None


def _first_match(candidates: list[Any], table: Mapping[Any, tuple[str, ...]]) -> Optional[Any]:
    for candidate in candidates:
        token = _token(candidate)
        if token is None:
            continue
        for key, tokens in table.items():
            if token in tokens:
                return key
    return None


def normalize_language(parameters: Mapping[str, Any], text: Optional[str] = None) -> Optional[LanguageCode]:
    """Digit, English or Spanish keyword to a language code; exact matches only."""
    candidates = [parameters.get(name) for name in LANGUAGE_PARAMETERS] + [text]
    return _first_match(candidates, LANGUAGE_TOKENS)


def normalize_product(value: Any) -> Product:
    return _first_match([value], PRODUCT_TOKENS) or Product.UNRECOGNIZED


def resolve_product(parameters: Mapping[str, Any], text: Optional[str] = None) -> Product:
    candidates = [parameters.get(name) for name in PRODUCT_PARAMETERS] + [text]
    return _first_match(candidates, PRODUCT_TOKENS) or Product.UNRECOGNIZED


def _awaiting_language(session: UserSession) -> bool:
    return session.language_code is None or session.current_context == ConversationStage.WAITING_LANGUAGE_SELECTION


def _language_prompt() -> TurnDecision:
    return TurnDecision(
        reply=Reply(MessageKind.LANGUAGE_PROMPT),
        changes={"current_context": ConversationStage.WAITING_LANGUAGE_SELECTION},
    )


def _on_language(parameters: Mapping[str, Any], text: Optional[str], is_open: bool) -> TurnDecision:
    language = normalize_language(parameters, text)
    if language is None:
        return _language_prompt()

    changes: dict[str, Any] = {
        "language_code": language,
        "current_context": ConversationStage.LANGUAGE_SELECTED,
    }
    if is_open:
        return TurnDecision(reply=Reply(MessageKind.BUSINESS_MENU), changes=changes)

    changes.update(current_context=ConversationStage.PRODUCT_SELECTED, process_completed=True)
    return TurnDecision(reply=Reply(MessageKind.OUT_OF_HOURS), changes=changes, mark_completed=True)


def _on_product(session: UserSession, parameters: Mapping[str, Any], text: Optional[str]) -> TurnDecision:
    if session.language_code is None:
        return _language_prompt()

    product = resolve_product(parameters, text)
    if product == Product.UNRECOGNIZED:
        return TurnDecision(reply=Reply(MessageKind.FALLBACK))

    return TurnDecision(
        reply=Reply(MessageKind.PRODUCT_INFO, product=product),
        changes={
            "current_context": ConversationStage.PRODUCT_SELECTED,
            "selected_product": product,
            "process_completed": True,
        },
        mark_completed=True,
    )


def decide(
    session: UserSession,
    intent: Intent,
    parameters: Optional[Mapping[str, Any]] = None,
    text: Optional[str] = None,
    is_open: bool = True,
) -> TurnDecision:
    parameters = parameters or {}

    if intent == Intent.PROCESS_COMPLETED or session.process_completed:
        return TurnDecision(reply=Reply(MessageKind.FAREWELL), changes=dict(COMPLETION_RESET), mark_completed=True)

    if intent == Intent.WELCOME:
        return TurnDecision(
            reply=Reply(MessageKind.WELCOME),
            changes={"current_context": ConversationStage.WAITING_LANGUAGE_SELECTION},
        )

    if intent == Intent.LANGUAGE:
        return _on_language(parameters, text, is_open)

    if intent == Intent.PRODUCT_SELECTION:
        return _on_product(session, parameters, text)

    if intent == Intent.FALLBACK:
        if _awaiting_language(session):
            return _language_prompt()
        return TurnDecision(reply=Reply(MessageKind.FALLBACK))

    return TurnDecision(reply=Reply(MessageKind.DEFAULT))
