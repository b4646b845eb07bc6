"""Per-user conversation sessions, held in memory and persisted as a full snapshot."""

from datetime import timedelta
from typing import Any, Optional

from pydantic import ValidationError

from app.logging_config import get_logger
from app.schemas.session import LanguageCode, SessionStats, UserSession
from app.services.alert_service import alert_persistence_failure
from app.services.clock import Clock
from app.services.snapshot_store import SnapshotStore

logger = get_logger("session_store")

DAYS_PER_MONTH = 30


class SessionStore:
    def __init__(self, snapshot_store: SnapshotStore, clock: Clock, idle_session_days: int = 30):
        self.snapshot_store = snapshot_store
        self.clock = clock
        self.idle_session_days = idle_session_days
        self.sessions: dict[str, UserSession] = {}

    def __contains__(self, user_id: str) -> bool:
        return user_id in self.sessions

    def __len__(self) -> int:
        return len(self.sessions)

    # === PERSISTENCE ===

    def load(self) -> None:
        """Load the snapshot. Any failure leaves an empty store."""
        try:
            raw = self.snapshot_store.load()
        except Exception as e:
            logger.error(f"Failed to load sessions, starting empty: {e}")
            alert_persistence_failure(self.snapshot_store.name, "load", e)
            self.sessions = {}
            return

        self.sessions = self._parse(raw)
        logger.info(f"Sessions loaded: {len(self.sessions)}")
        self.cleanup_old_sessions()

    def _parse(self, raw: dict[str, Any]) -> dict[str, UserSession]:
        sessions = {}
        for user_id, payload in raw.items():
            try:
                sessions[user_id] = UserSession.model_validate(payload)
            except ValidationError as e:
                logger.warning(
                    "Skipping unreadable session record",
                    extra={"context": {"user_id": user_id, "error": str(e)}},
                )
        return sessions

    def snapshot(self) -> dict[str, Any]:
        return {user_id: session.model_dump(mode="json") for user_id, session in self.sessions.items()}

    def save(self) -> bool:
        try:
            self.snapshot_store.save(self.snapshot())
            return True
        except Exception as e:
            logger.error(f"Failed to save sessions: {e}")
            alert_persistence_failure(self.snapshot_store.name, "save", e)
            return False

    def restore(self, raw: dict[str, Any]) -> None:
        self.sessions = self._parse(raw)
        self.save()

    # === OPERATIONS ===

    def _new_session(self, language_code: Optional[LanguageCode] = None) -> UserSession:
        now = self.clock.now()
        return UserSession(language_code=language_code, last_interaction_at=now, session_started_at=now)

    def get(self, user_id: str) -> UserSession:
        session = self.sessions.get(user_id)
        if session is None:
            session = self._new_session()
            self.sessions[user_id] = session
            self.save()
            logger.info(f"Session created: user={user_id}")
        return session

    def update(self, user_id: str, **changes: Any) -> UserSession:
        current = self.get(user_id)
        now = self.clock.now()
        # Keep last_interaction_at monotonic even if the clock is moved backwards.
        stamp = max(now, current.last_interaction_at)
        merged = {**current.model_dump(), **changes, "last_interaction_at": stamp}
        session = UserSession.model_validate(merged)
        self.sessions[user_id] = session
        self.save()
        return session

    def reset(self, user_id: str) -> bool:
        current = self.sessions.get(user_id)
        if current is None:
            return False
        self.sessions[user_id] = self._new_session(language_code=current.language_code)
        self.save()
        logger.info(f"Session reset: user={user_id}")
        return True

    def delete(self, user_id: str) -> bool:
        if user_id not in self.sessions:
            return False
        del self.sessions[user_id]
        self.save()
        return True

    def _delete_idle(self, max_idle: timedelta) -> int:
        cutoff = self.clock.now() - max_idle
        stale = [user_id for user_id, s in self.sessions.items() if s.last_interaction_at < cutoff]
        for user_id in stale:
            del self.sessions[user_id]
        if stale:
            self.save()
        return len(stale)

    def cleanup_old_sessions(self) -> int:
        """Drop sessions silent for longer than the idle window."""
        count = self._delete_idle(timedelta(days=self.idle_session_days))
        if count:
            logger.info(f"Idle session sweep removed {count} sessions")
        return count

    def cleanup_inactive_users(self, months: int) -> int:
        """Permanently drop users inactive for more than `months` (30-day months)."""
        if months <= 0:
            raise ValueError("months must be positive")
        count = self._delete_idle(timedelta(days=months * DAYS_PER_MONTH))
        logger.info(
            "Inactive user cleanup finished",
            extra={"context": {"months": months, "deleted": count}},
        )
        return count

    def stats(self) -> SessionStats:
        now = self.clock.now()
        stats = SessionStats(total_users=len(self.sessions))
        for session in self.sessions.values():
            if session.language_code == LanguageCode.ES:
                stats.spanish_users += 1
            elif session.language_code == LanguageCode.EN:
                stats.english_users += 1
            else:
                stats.unset_language_users += 1
            idle = now - session.last_interaction_at
            if idle < timedelta(days=1):
                stats.active_today += 1
            if idle < timedelta(days=7):
                stats.active_last_7_days += 1
        return stats

