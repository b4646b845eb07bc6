from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class DisableReason(str, Enum):
    COMMAND = "command"
    MANUAL_INTERVENTION = "manual_intervention"
    COMPLETED = "completed"


# Display priority for /status.
REASON_PRIORITY = (
    DisableReason.COMMAND,
    DisableReason.MANUAL_INTERVENTION,
    DisableReason.COMPLETED,
)


class DisableEntry(BaseModel):
    started_at: datetime
    expires_at: datetime
    issued_by: Optional[str] = None

    def is_live(self, now: datetime) -> bool:
        return self.expires_at > now
