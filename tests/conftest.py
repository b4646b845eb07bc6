from datetime import datetime
from unittest.mock import AsyncMock, Mock

import pytest

from app.config import Settings
from app.runtime import build_runtime
from app.services.business_hours import BusinessHours, load_business_hours_table
from app.services.clock import Clock
from app.services.disable_registry import DisableRegistry
from app.services.nlu import NLUProvider, NLUResult
from app.services.session_store import SessionStore
from app.services.snapshot_store import JsonSnapshotStore
from app.services.transport_service import TransportError

OWNER = "1234567890"
OWNER_CHAT = f"{OWNER}@s.whatsapp.net"
CUSTOMER = "5551234567"
CUSTOMER_CHAT = f"{CUSTOMER}@s.whatsapp.net"

# 2025-01-06 is a Monday.
MONDAY_NOON = datetime(2025, 1, 6, 12, 0)
MONDAY_EVENING = datetime(2025, 1, 6, 18, 0)


class FakeTransport:
    """Records sends and hands out sequential message ids."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.fail = False
        self._counter = 0

    async def send_text(self, chat_id: str, text: str):
        if self.fail:
            raise TransportError("gateway down")
        self._counter += 1
        self.sent.append((chat_id, text))
        return f"msg-{self._counter}"


def nlu_returning(intent_name, parameters=None):
    nlu = Mock(spec=NLUProvider)
    nlu.detect_intent = AsyncMock(return_value=NLUResult(intent_name=intent_name, parameters=parameters or {}))
    return nlu


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        owner_number=OWNER,
        data_dir=str(tmp_path / "data"),
        backup_dir=str(tmp_path / "backups"),
        database_url=f"sqlite:///{tmp_path / 'doncash.db'}",
        transport_token="test-token",
        admin_token="admin-secret",
        qr_api_password="qr-secret",
    )


@pytest.fixture
def clock():
    clock = Clock("America/New_York")
    clock.set_mock_now(MONDAY_NOON)
    return clock


@pytest.fixture
def business_hours(clock):
    return BusinessHours(load_business_hours_table(), clock)


@pytest.fixture
def sessions(tmp_path, clock):
    return SessionStore(JsonSnapshotStore(tmp_path / "data" / "states.json", "states"), clock)


@pytest.fixture
def registry(tmp_path, clock):
    return DisableRegistry(JsonSnapshotStore(tmp_path / "data" / "disabled_chats.json", "disabled_chats"), clock)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture(autouse=True)
def silence_alerts(monkeypatch):
    """Keep persistence alerts off the network."""
    monkeypatch.setattr("app.services.alert_service.ALERT_BOT_TOKEN", None)
    monkeypatch.setattr("app.services.alert_service.ALERT_CHAT_ID", None)


@pytest.fixture
def runtime(settings, clock, transport):
    return build_runtime(
        settings,
        clock=clock,
        nlu=nlu_returning("Default Welcome Intent"),
        transport=transport,
        channels=[],
    )
