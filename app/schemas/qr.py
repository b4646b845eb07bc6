from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class CredentialChallenge(BaseModel):
    data: str
    received_at: datetime
    png: Optional[bytes] = None


class ChallengeStatus(BaseModel):
    has_challenge: bool
    valid: bool
    connected: Optional[bool] = None
    received_at: Optional[datetime] = None
    age_seconds: Optional[int] = None
    expires_in_seconds: Optional[int] = None


class ChallengeRequest(BaseModel):
    data: str


class ConnectionStatusRequest(BaseModel):
    connected: bool
