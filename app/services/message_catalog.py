from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml

from app.logging_config import get_logger
from app.schemas.session import LanguageCode, Product
from app.services.state_machine import MessageKind, Reply

logger = get_logger("message_catalog")

_MESSAGES_PATH = Path(__file__).resolve().parents[1] / "content" / "messages.yaml"
DEFAULT_LANGUAGE = LanguageCode.ES.value

# Language-independent texts.
_SHARED_KINDS = {MessageKind.WELCOME: "welcome", MessageKind.LANGUAGE_PROMPT: "language_prompt"}
_LOCALIZED_KINDS = {
    MessageKind.BUSINESS_MENU: "business_menu",
    MessageKind.OUT_OF_HOURS: "out_of_hours",
    MessageKind.FALLBACK: "fallback",
    MessageKind.DEFAULT: "default",
    MessageKind.FAREWELL: "farewell",
    MessageKind.ERROR: "error",
}


@lru_cache(maxsize=4)
def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return data if isinstance(data, dict) else {}


class MessageCatalog:
    def __init__(self, path: Path = _MESSAGES_PATH):
        self.messages = _load_yaml(path)
        if not self.messages:
            raise RuntimeError(f"Message catalog is empty or missing: {path}")

    def _localized(self, key: str, language: Optional[str]) -> str:
        variants = self.messages.get(key) or {}
        text = variants.get(language or DEFAULT_LANGUAGE) or variants.get(DEFAULT_LANGUAGE)
        if text is None:
            raise KeyError(f"No text for {key}")
        return text

    def text(self, key: str) -> str:
        return self.messages[key]

    def product_info(self, product: Product, language: Optional[str]) -> str:
        variants = (self.messages.get("products") or {}).get(product.value) or {}
        return variants.get(language or DEFAULT_LANGUAGE) or variants[DEFAULT_LANGUAGE]

    def closing(self, language: Optional[str], is_open: bool) -> str:
        variants = (self.messages.get("closing") or {}).get("open" if is_open else "closed") or {}
        return variants.get(language or DEFAULT_LANGUAGE) or variants[DEFAULT_LANGUAGE]

    def render(self, reply: Reply, language: Optional[str], is_open: bool = True) -> str:
        """Text for a reply. `is_open` must be read at send time, it picks the closing line."""
        if reply.kind in _SHARED_KINDS:
            return self.text(_SHARED_KINDS[reply.kind])
        if reply.kind == MessageKind.PRODUCT_INFO and reply.product is not None:
            return f"{self.product_info(reply.product, language)}\n\n{self.closing(language, is_open)}"
        if reply.kind in _LOCALIZED_KINDS:
            return self._localized(_LOCALIZED_KINDS[reply.kind], language)
        logger.warning(f"No template for reply kind {reply.kind.value}, using default")
        return self._localized("default", language)

    def error(self, language: Optional[str]) -> str:
        return self._localized("error", language)

    def owner_goodbye(self) -> str:
        return self.text("owner_goodbye")
