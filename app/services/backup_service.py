"""Snapshots of the session store and disable registry to dated JSON files."""

import asyncio
import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from app.logging_config import get_logger
from app.services.clock import Clock
from app.services.disable_registry import DisableRegistry
from app.services.result import ErrorCode, Result
from app.services.session_store import SessionStore
from app.services.snapshot_store import atomic_write

logger = get_logger("backup_service")

BACKUP_PREFIX = "states-"
BACKUP_SUFFIX = ".json"
DAILY_BACKUP_RE = re.compile(r"^states-\d{4}-\d{2}-\d{2}\.json$")


class BackupService:
    def __init__(
        self,
        sessions: SessionStore,
        registry: DisableRegistry,
        clock: Clock,
        backup_dir: str | Path,
        max_backups: int = 30,
        max_named_backups: int = 10,
        interval_hours: float = 24,
    ):
        self.sessions = sessions
        self.registry = registry
        self.clock = clock
        self.backup_dir = Path(backup_dir)
        self.max_backups = max_backups
        self.max_named_backups = max_named_backups
        self.interval_hours = interval_hours
        self.last_backup_at: Optional[datetime] = None
        self._task: Optional[asyncio.Task] = None

    def _file_name(self, name: Optional[str], now: datetime) -> str:
        if name:
            return f"{BACKUP_PREFIX}{name}-{now.strftime('%Y-%m-%d_%H-%M-%S')}{BACKUP_SUFFIX}"
        return f"{BACKUP_PREFIX}{now.strftime('%Y-%m-%d')}{BACKUP_SUFFIX}"

    def _payload(self, now: datetime) -> dict[str, Any]:
        return {
            "created_at": now.isoformat(),
            "sessions": self.sessions.snapshot(),
            "disable_registry": self.registry.snapshot(),
        }

    def _backup_files(self) -> list[Path]:
        if not self.backup_dir.exists():
            return []
        files = [p for p in self.backup_dir.glob(f"{BACKUP_PREFIX}*{BACKUP_SUFFIX}") if p.is_file()]
        return sorted(files, key=lambda p: (p.stat().st_mtime, p.name), reverse=True)

    def perform_backup(self, name: Optional[str] = None) -> Result[Path]:
        """Write a backup now. Named backups never overwrite the daily file."""
        now = self.clock.now()
        path = self.backup_dir / self._file_name(name, now)
        try:
            atomic_write(path, json.dumps(self._payload(now), ensure_ascii=False, indent=2))
        except OSError as e:
            logger.error(f"Backup failed: {e}")
            return Result.from_exception(e, ErrorCode.BACKUP_WRITE_FAILED)
        self.last_backup_at = now
        logger.info(f"Backup written: {path.name}")
        self.rotate()
        return Result.success(path)

    def rotate(self) -> int:
        """Daily and named backups are each trimmed to their own limit."""
        files = self._backup_files()
        daily = [p for p in files if DAILY_BACKUP_RE.match(p.name)]
        named = [p for p in files if not DAILY_BACKUP_RE.match(p.name)]
        stale = daily[self.max_backups :] + named[self.max_named_backups :]
        for path in stale:
            try:
                path.unlink()
            except OSError as e:
                logger.warning(f"Could not delete old backup {path.name}: {e}")
        if stale:
            logger.info(
                f"Backup rotation removed {len(stale)} files, "
                f"keeping {self.max_backups} daily and {self.max_named_backups} named"
            )
        return len(stale)

    def list_backups(self) -> list[dict[str, Any]]:
        return [
            {
                "name": path.name,
                "size_bytes": path.stat().st_size,
                "modified_at": datetime.fromtimestamp(path.stat().st_mtime, tz=self.clock.tz).isoformat(),
            }
            for path in self._backup_files()
        ]

    def restore_backup(self, name: str) -> Result[Path]:
        path = self.backup_dir / Path(name).name
        if not path.exists():
            return Result.failure(f"Backup not found: {name}", ErrorCode.BACKUP_NOT_FOUND)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            return Result.from_exception(e, ErrorCode.BACKUP_UNREADABLE)
        if not isinstance(data, dict) or "sessions" not in data:
            return Result.failure(f"Backup has no sessions: {name}", ErrorCode.BACKUP_INVALID)

        self.perform_backup("pre-restore")
        self.sessions.restore(data.get("sessions") or {})
        self.registry.restore(data.get("disable_registry") or {})
        logger.info(f"Backup restored: {path.name}")
        return Result.success(path)

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval_hours * 3600)
                now = self.clock.now()
                # Snapshot synchronously, write off the event loop.
                payload = json.dumps(self._payload(now), ensure_ascii=False, indent=2)
                path = self.backup_dir / self._file_name(None, now)
                await asyncio.to_thread(atomic_write, path, payload)
                self.last_backup_at = now
                self.rotate()
                logger.info(f"Scheduled backup written: {path.name}")
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error(
                    "Backup loop failed",
                    extra={"context": {"error": str(exc)}},
                )

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._loop())
            logger.info(f"Backup scheduler started, interval={self.interval_hours}h")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
