from app.models.state_snapshot import StateSnapshotRecord

__all__ = ["StateSnapshotRecord"]
