"""Chats where the bot must stay silent.

Three independent namespaces (owner command, manual intervention, completed
conversation). A chat is disabled while any of them holds a live entry.
"""

from datetime import timedelta
from typing import Any, Optional

from pydantic import ValidationError

from app.config import DEFAULT_MANUAL_INTERVENTION_HOURS
from app.logging_config import get_logger
from app.schemas.disable import REASON_PRIORITY, DisableEntry, DisableReason
from app.services.alert_service import alert_persistence_failure
from app.services.clock import Clock
from app.services.snapshot_store import SnapshotStore

logger = get_logger("disable_registry")

# Snapshot keys, one per namespace.
NAMESPACE_KEYS = {
    DisableReason.COMMAND: "command_disables",
    DisableReason.MANUAL_INTERVENTION: "manual_interventions",
    DisableReason.COMPLETED: "completed_chats",
}


class DisableRegistry:
    def __init__(
        self,
        snapshot_store: SnapshotStore,
        clock: Clock,
        manual_intervention_hours: int = DEFAULT_MANUAL_INTERVENTION_HOURS,
        completed_chat_hours: int = 24,
    ):
        self.snapshot_store = snapshot_store
        self.clock = clock
        self.manual_intervention_hours = manual_intervention_hours
        self.completed_chat_hours = completed_chat_hours
        self.namespaces: dict[DisableReason, dict[str, DisableEntry]] = {reason: {} for reason in DisableReason}

    # === PERSISTENCE ===

    def load(self) -> None:
        try:
            raw = self.snapshot_store.load()
        except Exception as e:
            logger.error(f"Failed to load disable registry, starting empty: {e}")
            alert_persistence_failure(self.snapshot_store.name, "load", e)
            self.namespaces = {reason: {} for reason in DisableReason}
            return

        self.namespaces = self._parse(raw)
        logger.info("Disable registry loaded", extra={"context": self.counts_by_key()})
        self.sweep_expired()

    def _parse(self, raw: dict[str, Any]) -> dict[DisableReason, dict[str, DisableEntry]]:
        namespaces: dict[DisableReason, dict[str, DisableEntry]] = {}
        for reason, key in NAMESPACE_KEYS.items():
            entries = {}
            for chat_id, payload in (raw.get(key) or {}).items():
                try:
                    entries[chat_id] = DisableEntry.model_validate(payload)
                except ValidationError as e:
                    logger.warning(
                        "Skipping unreadable disable entry",
                        extra={"context": {"namespace": key, "chat_id": chat_id, "error": str(e)}},
                    )
            namespaces[reason] = entries
        return namespaces

    def snapshot(self) -> dict[str, Any]:
        return {
            key: {chat_id: entry.model_dump(mode="json") for chat_id, entry in self.namespaces[reason].items()}
            for reason, key in NAMESPACE_KEYS.items()
        }

    def save(self) -> bool:
        try:
            self.snapshot_store.save(self.snapshot())
            return True
        except Exception as e:
            logger.error(f"Failed to save disable registry: {e}")
            alert_persistence_failure(self.snapshot_store.name, "save", e)
            return False

    def restore(self, raw: dict[str, Any]) -> None:
        self.namespaces = self._parse(raw)
        self.save()

    # === QUERIES ===

    def is_disabled(self, chat_id: str) -> bool:
        self.sweep_expired()
        now = self.clock.now()
        return any(
            entry is not None and entry.is_live(now)
            for entry in (self.namespaces[reason].get(chat_id) for reason in DisableReason)
        )

    def status_detail(self, chat_id: str) -> Optional[tuple[DisableReason, DisableEntry]]:
        """Highest-priority entry for display. is_disabled stays the OR of all namespaces."""
        for reason in REASON_PRIORITY:
            entry = self.namespaces[reason].get(chat_id)
            if entry is not None:
                return reason, entry
        return None

    def counts(self) -> dict[DisableReason, int]:
        return {reason: len(entries) for reason, entries in self.namespaces.items()}

    def counts_by_key(self) -> dict[str, int]:
        return {NAMESPACE_KEYS[reason]: count for reason, count in self.counts().items()}

    def total(self) -> int:
        return sum(self.counts().values())

    # === MUTATIONS ===

    def _put(self, reason: DisableReason, chat_id: str, hours: float, issued_by: Optional[str] = None) -> DisableEntry:
        now = self.clock.now()
        entry = DisableEntry(started_at=now, expires_at=now + timedelta(hours=hours), issued_by=issued_by)
        self.namespaces[reason][chat_id] = entry
        self.save()
        logger.info(
            "Chat disabled",
            extra={
                "context": {
                    "chat_id": chat_id,
                    "reason": reason.value,
                    "hours": hours,
                    "expires_at": entry.expires_at.isoformat(),
                }
            },
        )
        return entry

    def disable_by_command(self, chat_id: str, hours: float, issued_by: Optional[str] = None) -> DisableEntry:
        return self._put(DisableReason.COMMAND, chat_id, hours, issued_by=issued_by)

    def register_manual_intervention(self, chat_id: str, hours: Optional[float] = None) -> DisableEntry:
        return self._put(
            DisableReason.MANUAL_INTERVENTION,
            chat_id,
            self.manual_intervention_hours if hours is None else hours,
        )

    def mark_completed(self, chat_id: str, hours: Optional[float] = None) -> DisableEntry:
        return self._put(
            DisableReason.COMPLETED,
            chat_id,
            self.completed_chat_hours if hours is None else hours,
        )

    def reactivate(self, chat_id: str) -> bool:
        """Clear every namespace for the chat. Returns whether anything was cleared."""
        was_disabled = False
        for entries in self.namespaces.values():
            if entries.pop(chat_id, None) is not None:
                was_disabled = True
        self.save()
        if was_disabled:
            logger.info(f"Chat reactivated: {chat_id}")
        return was_disabled

    def sweep_expired(self, persist: bool = True) -> int:
        now = self.clock.now()
        released = 0
        for reason, entries in self.namespaces.items():
            expired = [chat_id for chat_id, entry in entries.items() if entry.expires_at <= now]
            for chat_id in expired:
                del entries[chat_id]
                logger.info(f"Disable entry expired: chat={chat_id} reason={reason.value}")
            released += len(expired)
        if released and persist:
            self.save()
        return released

    def clear_all(self, persist: bool = True) -> int:
        released = self.total()
        for entries in self.namespaces.values():
            entries.clear()
        if released and persist:
            self.save()
        return released
