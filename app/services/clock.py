from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from app.logging_config import get_logger

logger = get_logger("clock")


class Clock:
    """Wall clock in the business timezone with a simulation override."""

    def __init__(self, tz_name: str = "America/New_York"):
        self.tz = ZoneInfo(tz_name)
        self._mock_now: Optional[datetime] = None

    @property
    def is_mocked(self) -> bool:
        return self._mock_now is not None

    def set_mock_now(self, instant: Optional[datetime]) -> None:
        """Pin "now" to an explicit instant, or pass None to go back to real time."""
        if instant is None:
            self._mock_now = None
            logger.info("Simulated time cleared, using wall clock")
            return
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=self.tz)
        self._mock_now = instant
        logger.info(f"Simulated time set: {instant.isoformat()}")

    def now(self) -> datetime:
        if self._mock_now is not None:
            return self._mock_now.astimezone(self.tz)
        return datetime.now(self.tz)

    def localize(self, instant: datetime) -> datetime:
        """Read an instant in the business timezone; naive values are business-local."""
        if instant.tzinfo is None:
            return instant.replace(tzinfo=self.tz)
        return instant.astimezone(self.tz)
