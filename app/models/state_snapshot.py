from sqlalchemy import JSON, Column, DateTime, Text
from sqlalchemy.sql import func

from app.database import Base


class StateSnapshotRecord(Base):
    """One top-level entry of a persisted store (a user session or a disable namespace)."""

    __tablename__ = "state_snapshots"

    store_name = Column(Text, primary_key=True)
    record_key = Column(Text, primary_key=True)
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
