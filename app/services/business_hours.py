"""Business-hours oracle: open/closed/holiday answers for an instant."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Optional

import yaml

from app.logging_config import get_logger
from app.services.clock import Clock

logger = get_logger("business_hours")

_DEFAULT_TABLE_PATH = Path(__file__).resolve().parents[1] / "content" / "business_hours.yaml"

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
LOOKAHEAD_DAYS = 7


@dataclass(frozen=True)
class DaySchedule:
    start: Optional[int] = None
    end: Optional[int] = None

    @property
    def closed(self) -> bool:
        return self.start is None or self.end is None

    def contains(self, hour: int) -> bool:
        return not self.closed and self.start <= hour < self.end


CLOSED = DaySchedule()


@dataclass(frozen=True)
class BusinessHoursTable:
    days: tuple[DaySchedule, ...]
    holidays: frozenset[str] = field(default_factory=frozenset)

    def for_weekday(self, weekday: int) -> DaySchedule:
        return self.days[weekday]

    @classmethod
    def from_dict(cls, data: dict) -> "BusinessHoursTable":
        schedule = data.get("schedule") or {}
        days = []
        for name in WEEKDAYS:
            entry = schedule.get(name, "closed")
            if not isinstance(entry, dict):
                days.append(CLOSED)
                continue
            start, end = int(entry["start"]), int(entry["end"])
            if not 0 <= start < end <= 24:
                raise ValueError(f"Invalid hours for {name}: {start}-{end}")
            days.append(DaySchedule(start=start, end=end))
        holidays = frozenset(str(item) for item in data.get("holidays") or [])
        return cls(days=tuple(days), holidays=holidays)


def load_business_hours_table(path: Optional[str | Path] = None) -> BusinessHoursTable:
    table_path = Path(path) if path else _DEFAULT_TABLE_PATH
    with table_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return BusinessHoursTable.from_dict(data)


class BusinessHours:
    """Read-only oracle over a BusinessHoursTable. Hour resolution only."""

    def __init__(self, table: BusinessHoursTable, clock: Clock):
        self.table = table
        self.clock = clock

    def _resolve(self, instant: Optional[datetime]) -> datetime:
        return self.clock.now() if instant is None else self.clock.localize(instant)

    def _at_hour(self, day: date, hour: int) -> datetime:
        return datetime.combine(day, time(), tzinfo=self.clock.tz) + timedelta(hours=hour)

    def _opening_on(self, day: date) -> Optional[datetime]:
        if self._is_holiday_date(day):
            return None
        schedule = self.table.for_weekday(day.weekday())
        if schedule.closed:
            return None
        return self._at_hour(day, schedule.start)

    def _is_holiday_date(self, day: date) -> bool:
        return day.strftime("%m-%d") in self.table.holidays

    def is_holiday(self, instant: Optional[datetime] = None) -> bool:
        return self._is_holiday_date(self._resolve(instant).date())

    def is_open(self, instant: Optional[datetime] = None) -> bool:
        now = self._resolve(instant)
        if self._is_holiday_date(now.date()):
            return False
        return self.table.for_weekday(now.weekday()).contains(now.hour)

    def next_opening(self, instant: Optional[datetime] = None) -> Optional[datetime]:
        now = self._resolve(instant)
        today = self._opening_on(now.date())
        if today is not None and now.hour < today.hour:
            return today

        for offset in range(1, LOOKAHEAD_DAYS + 1):
            opening = self._opening_on(now.date() + timedelta(days=offset))
            if opening is not None:
                return opening

        logger.warning(
            "No opening found within a week, check the business hours table",
            extra={"context": {"from": now.isoformat()}},
        )
        return None

    def next_closing(self, instant: Optional[datetime] = None) -> Optional[datetime]:
        now = self._resolve(instant)
        if self.is_open(now):
            schedule = self.table.for_weekday(now.weekday())
            return self._at_hour(now.date(), schedule.end)

        opening = self.next_opening(now)
        if opening is None:
            return None
        schedule = self.table.for_weekday(opening.weekday())
        return self._at_hour(opening.date(), schedule.end)


def format_datetime(instant: datetime, language: Optional[str] = "es") -> str:
    if language == "en":
        return instant.strftime("%m/%d/%Y %I:%M %p")
    return instant.strftime("%d/%m/%Y %H:%M")
