"""Full-snapshot persistence for the in-memory stores.

Each store is a mapping of string keys to JSON-able payloads. Loading returns the
whole mapping; saving atomically replaces it.
"""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from sqlalchemy.orm import sessionmaker

from app.config import Settings
from app.database import Base, create_db_engine, create_session_factory
from app.logging_config import get_logger
from app.models import StateSnapshotRecord

logger = get_logger("snapshot_store")


class SnapshotStore(ABC):
    """Load/save one named store as a whole."""

    name: str

    @abstractmethod
    def load(self) -> dict[str, Any]:
        """Return the persisted mapping, or an empty dict when nothing was saved yet."""
        pass

    @abstractmethod
    def save(self, data: dict[str, Any]) -> None:
        """Replace the persisted mapping. Raises on I/O failure."""
        pass


def atomic_write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(content, encoding="utf-8")
    os.replace(tmp, path)


class JsonSnapshotStore(SnapshotStore):
    def __init__(self, path: Path, name: str):
        self.path = Path(path)
        self.name = name

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return data

    def save(self, data: dict[str, Any]) -> None:
        atomic_write(self.path, json.dumps(data, ensure_ascii=False, indent=2))


class SqlSnapshotStore(SnapshotStore):
    """One row per top-level key; save swaps every row of the store in one transaction."""

    def __init__(self, session_factory: sessionmaker, name: str):
        self.session_factory = session_factory
        self.name = name

    def load(self) -> dict[str, Any]:
        db = self.session_factory()
        try:
            rows = db.query(StateSnapshotRecord).filter(StateSnapshotRecord.store_name == self.name).all()
            return {row.record_key: row.payload for row in rows}
        finally:
            db.close()

    def save(self, data: dict[str, Any]) -> None:
        db = self.session_factory()
        try:
            db.query(StateSnapshotRecord).filter(StateSnapshotRecord.store_name == self.name).delete(
                synchronize_session=False
            )
            db.add_all(
                StateSnapshotRecord(store_name=self.name, record_key=key, payload=payload)
                for key, payload in data.items()
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


_session_factories: dict[str, sessionmaker] = {}


def _sql_session_factory(database_url: str) -> sessionmaker:
    factory = _session_factories.get(database_url)
    if factory is None:
        engine = create_db_engine(database_url)
        Base.metadata.create_all(engine)
        factory = create_session_factory(engine)
        _session_factories[database_url] = factory
    return factory


def build_snapshot_store(settings: Settings, name: str) -> SnapshotStore:
    backend = settings.storage_backend.strip().lower()
    if backend == "sql":
        return SqlSnapshotStore(_sql_session_factory(settings.database_url), name)
    if backend == "json":
        return JsonSnapshotStore(Path(settings.data_dir) / f"{name}.json", name)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
