"""Pull access to the current pairing challenge."""

import secrets

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from app.runtime import BotRuntime, get_runtime
from app.schemas.qr import ChallengeStatus
from app.services.qr_service import png_data_url

router = APIRouter(prefix="/qr", tags=["qr"])

security = HTTPBasic()


def _require_qr_credentials(
    credentials: HTTPBasicCredentials = Depends(security),
    runtime: BotRuntime = Depends(get_runtime),
) -> BotRuntime:
    settings = runtime.settings
    if not settings.qr_api_enabled or not settings.qr_api_password:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="QR API disabled")
    user_ok = secrets.compare_digest(credentials.username.encode(), settings.qr_api_username.encode())
    password_ok = secrets.compare_digest(credentials.password.encode(), settings.qr_api_password.encode())
    if not (user_ok and password_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return runtime


@router.get("")
async def get_challenge(runtime: BotRuntime = Depends(_require_qr_credentials)):
    challenge = runtime.challenges.current_if_fresh()
    if challenge is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No valid QR available")
    age = runtime.clock.now() - challenge.received_at
    return {
        "data": challenge.data,
        "image": png_data_url(challenge.png) if challenge.png else None,
        "received_at": challenge.received_at,
        "expires_in_seconds": max(0, runtime.settings.qr_lifetime_seconds - int(age.total_seconds())),
    }


@router.get("/status", response_model=ChallengeStatus)
async def get_challenge_status(runtime: BotRuntime = Depends(get_runtime)):
    return runtime.challenges.get_status()
