"""Monthly purge of inactive users, with backups taken before and after."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from app.logging_config import get_logger
from app.services.alert_service import alert_cleanup_aborted
from app.services.backup_service import BackupService
from app.services.clock import Clock
from app.services.result import ErrorCode, Result
from app.services.session_store import SessionStore

logger = get_logger("cleanup_service")

POLL_INTERVAL_SECONDS = 15 * 60


@dataclass
class CleanupReport:
    deleted_users: int
    inactivity_months: int
    ran_at: datetime


class CleanupScheduler:
    def __init__(
        self,
        sessions: SessionStore,
        backups: BackupService,
        clock: Clock,
        inactivity_months: int = 3,
        run_day: int = 1,
        run_hour: int = 3,
    ):
        if not 1 <= run_day <= 28:
            raise ValueError("run_day must be between 1 and 28")
        self.sessions = sessions
        self.backups = backups
        self.clock = clock
        self.inactivity_months = inactivity_months
        self.run_day = run_day
        self.run_hour = run_hour
        self.last_run_at: Optional[datetime] = None
        self._last_run_month: Optional[tuple[int, int]] = None
        self._task: Optional[asyncio.Task] = None

    def perform_cleanup(self, months: Optional[int] = None) -> Result[CleanupReport]:
        months = self.inactivity_months if months is None else months
        if months <= 0:
            return Result.failure("months must be positive", ErrorCode.INVALID_MONTHS)

        pre = self.backups.perform_backup("pre-cleanup")
        if not pre.ok:
            # Never delete users without a safety copy.
            alert_cleanup_aborted(f"pre-cleanup backup failed: {pre.error}")
            return Result.failure(f"Pre-cleanup backup failed: {pre.error}", ErrorCode.BACKUP_FAILED)

        deleted = self.sessions.cleanup_inactive_users(months)
        self.backups.perform_backup("post-cleanup")

        now = self.clock.now()
        self.last_run_at = now
        logger.info(
            "Inactive user cleanup completed",
            extra={"context": {"deleted_users": deleted, "inactivity_months": months}},
        )
        return Result.success(CleanupReport(deleted_users=deleted, inactivity_months=months, ran_at=now))

    def run_manual_cleanup(self, months: Optional[int] = None) -> Result[CleanupReport]:
        """One-off cleanup; an explicit period does not change the configured one."""
        return self.perform_cleanup(months)

    def set_inactivity_period(self, months: int) -> bool:
        if not isinstance(months, int) or months <= 0:
            return False
        self.inactivity_months = months
        logger.info(f"Inactivity period set to {months} months")
        return True

    def is_due(self, now: Optional[datetime] = None) -> bool:
        now = now or self.clock.now()
        if (now.year, now.month) == self._last_run_month:
            return False
        return now.day == self.run_day and now.hour == self.run_hour

    def next_run_at(self, now: Optional[datetime] = None) -> datetime:
        now = now or self.clock.now()
        candidate = now.replace(day=self.run_day, hour=self.run_hour, minute=0, second=0, microsecond=0)
        if candidate <= now or (now.year, now.month) == self._last_run_month:
            first_next_month = (now.replace(day=1) + timedelta(days=32)).replace(day=1)
            candidate = first_next_month.replace(day=self.run_day, hour=self.run_hour, minute=0, second=0, microsecond=0)
        return candidate

    def run_if_due(self) -> Optional[Result[CleanupReport]]:
        now = self.clock.now()
        if not self.is_due(now):
            return None
        self._last_run_month = (now.year, now.month)
        return self.perform_cleanup()

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(POLL_INTERVAL_SECONDS)
                self.run_if_due()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error(
                    "Cleanup loop failed",
                    extra={"context": {"error": str(exc)}},
                )

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._loop())
            logger.info(f"Cleanup scheduler started, next run {self.next_run_at().isoformat()}")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def get_status(self) -> dict:
        return {
            "inactivity_months": self.inactivity_months,
            "next_run_at": self.next_run_at().isoformat(),
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
        }
