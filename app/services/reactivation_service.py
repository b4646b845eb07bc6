"""Automatic reactivation of silenced chats.

Two release paths run on every check:
- mass release of every disable entry once per close-of-business transition,
  guarded by a (date, hour) marker so it fires at most once per hour;
- per-entry release of expired entries.
"""

import asyncio
from datetime import datetime
from typing import Optional

from app.logging_config import get_logger
from app.services.business_hours import BusinessHours
from app.services.clock import Clock
from app.services.disable_registry import DisableRegistry

logger = get_logger("reactivation_service")


class AutoReactivationScheduler:
    def __init__(
        self,
        registry: DisableRegistry,
        business_hours: BusinessHours,
        clock: Clock,
        check_interval_minutes: float = 5,
    ):
        if check_interval_minutes <= 0:
            raise ValueError("check_interval_minutes must be positive")
        self.registry = registry
        self.business_hours = business_hours
        self.clock = clock
        self.check_interval_minutes = check_interval_minutes
        self.last_check_at: Optional[datetime] = None
        self.was_business_hours = business_hours.is_open()
        self.mass_reactivation_marker: Optional[tuple[str, int]] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def check_and_reactivate(self) -> int:
        """Run one check. Returns how many entries were released."""
        now = self.clock.now()
        self.last_check_at = now
        is_open = self.business_hours.is_open(now)
        released = 0

        marker = (now.date().isoformat(), now.hour)
        if self.was_business_hours and not is_open and marker != self.mass_reactivation_marker:
            mass = self.registry.clear_all(persist=False)
            self.mass_reactivation_marker = marker
            released += mass
            logger.info(
                "Close of business, mass reactivation",
                extra={"context": {"released": mass, "marker": list(marker)}},
            )
        self.was_business_hours = is_open

        released += self.registry.sweep_expired(persist=False)

        if released:
            self.registry.save()
            logger.info(f"Reactivation check released {released} entries")
        return released

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.check_interval_minutes * 60)
                self.check_and_reactivate()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error(
                    "Reactivation loop failed",
                    extra={"context": {"error": str(exc)}},
                )

    def start(self) -> bool:
        """Start the periodic check on the running event loop. Runs one check immediately."""
        if self.running:
            return False
        self.check_and_reactivate()
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"Auto-reactivation started, interval={self.check_interval_minutes} min")
        return True

    def stop(self) -> bool:
        if not self.running:
            self._task = None
            return False
        self._task.cancel()
        self._task = None
        logger.info("Auto-reactivation stopped")
        return True

    def set_check_interval(self, minutes: float) -> bool:
        if minutes is None or minutes <= 0:
            return False
        self.check_interval_minutes = minutes
        if self.running:
            self.stop()
            self.start()
        logger.info(f"Reactivation interval set to {minutes} min")
        return True

    def get_status(self) -> dict:
        counts = self.registry.counts_by_key()
        return {
            "running": self.running,
            "check_interval_minutes": self.check_interval_minutes,
            "last_check_at": self.last_check_at.isoformat() if self.last_check_at else None,
            "was_business_hours": self.was_business_hours,
            "mass_reactivation_marker": list(self.mass_reactivation_marker) if self.mass_reactivation_marker else None,
            "pending_reactivations": counts,
            "pending_total": sum(counts.values()),
        }
