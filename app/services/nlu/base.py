from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional


class NLUError(Exception):
    """Intent detection failed (network, auth or provider error)."""


@dataclass
class NLUResult:
    intent_name: Optional[str]
    parameters: dict[str, Any] = field(default_factory=dict)
    output_contexts: List[str] = field(default_factory=list)
    language_code: Optional[str] = None


class NLUProvider(ABC):
    """Abstract base class for intent detection providers."""

    @abstractmethod
    async def detect_intent(
        self,
        session_id: str,
        text: str,
        language_code: str,
        contexts: Optional[List[str]] = None,
    ) -> NLUResult:
        """Detect the intent of a user message. Raises NLUError on failure."""
        pass
