"""Admin API endpoints for inspecting and maintaining the bot."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel

from app.runtime import BotRuntime, get_runtime
from app.services.business_hours import format_datetime
from app.services.result import ErrorCode

router = APIRouter(prefix="/admin", tags=["admin"])


class BackupRequest(BaseModel):
    name: Optional[str] = None


class RestoreRequest(BaseModel):
    name: str


def _require_admin_token(provided: Optional[str], expected: Optional[str]) -> None:
    if not expected:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")
    if not provided or provided != expected:
        raise HTTPException(status_code=401, detail="Invalid admin token")


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


@router.get("/status")
def admin_status(
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
    runtime: BotRuntime = Depends(get_runtime),
):
    _require_admin_token(x_admin_token, runtime.settings.admin_token)

    hours = runtime.business_hours
    now = runtime.clock.now()
    next_opening = hours.next_opening()
    return {
        "now": now.isoformat(),
        "clock_mocked": runtime.clock.is_mocked,
        "business_hours": {
            "open": hours.is_open(),
            "holiday": hours.is_holiday(),
            "next_opening": _isoformat(next_opening),
            "next_opening_display": format_datetime(next_opening, "es") if next_opening else None,
            "next_closing": _isoformat(hours.next_closing()),
        },
        "reactivation": runtime.scheduler.get_status(),
        "disabled_chats": runtime.registry.counts_by_key(),
        "sessions": runtime.sessions.stats().model_dump(),
        "cleanup": runtime.cleanup.get_status(),
        "qr": runtime.challenges.get_status().model_dump(mode="json"),
    }


@router.post("/flush")
def admin_flush(
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
    runtime: BotRuntime = Depends(get_runtime),
):
    _require_admin_token(x_admin_token, runtime.settings.admin_token)
    ok = runtime.save_states()
    if not ok:
        raise HTTPException(status_code=500, detail="State flush failed")
    return {"success": True}


@router.get("/backups")
def admin_list_backups(
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
    runtime: BotRuntime = Depends(get_runtime),
):
    _require_admin_token(x_admin_token, runtime.settings.admin_token)
    return {"backups": runtime.backups.list_backups()}


@router.post("/backups")
def admin_create_backup(
    payload: BackupRequest,
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
    runtime: BotRuntime = Depends(get_runtime),
):
    _require_admin_token(x_admin_token, runtime.settings.admin_token)
    result = runtime.backups.perform_backup(payload.name)
    if not result.ok:
        raise HTTPException(status_code=500, detail=result.error)
    return {"success": True, "file": result.value.name}


@router.post("/backups/restore")
def admin_restore_backup(
    payload: RestoreRequest,
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
    runtime: BotRuntime = Depends(get_runtime),
):
    _require_admin_token(x_admin_token, runtime.settings.admin_token)
    result = runtime.backups.restore_backup(payload.name)
    if not result.ok:
        status_code = 404 if result.error_code == ErrorCode.BACKUP_NOT_FOUND else 500
        raise HTTPException(status_code=status_code, detail=result.error)
    return {"success": True, "restored": payload.name, "sessions": len(runtime.sessions)}
