from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class LanguageCode(str, Enum):
    ES = "es"
    EN = "en"


class ConversationStage(str, Enum):
    WELCOME = "welcome"
    WAITING_LANGUAGE_SELECTION = "waiting_language_selection"
    LANGUAGE_SELECTED = "language_selected"
    PRODUCT_SELECTED = "product_selected"
    FALLBACK = "fallback"
    CLEARED = ""


class Product(str, Enum):
    WATCHES = "watches"
    DIAMONDS = "diamonds"
    GOLD = "gold"
    UNRECOGNIZED = "unrecognized"


class UserSession(BaseModel):
    language_code: Optional[LanguageCode] = None
    current_context: ConversationStage = ConversationStage.WELCOME
    selected_product: Optional[Product] = None
    process_completed: bool = False
    last_interaction_at: datetime
    session_started_at: datetime

    @property
    def language(self) -> str:
        return self.language_code.value if self.language_code else LanguageCode.ES.value


class SessionStats(BaseModel):
    total_users: int = 0
    spanish_users: int = 0
    english_users: int = 0
    unset_language_users: int = 0
    active_today: int = 0
    active_last_7_days: int = 0
