import json
import logging
import sys

from app.logging_config import (
    ChatLoggerAdapter,
    JSONFormatter,
    TextFormatter,
    get_chat_logger,
    get_logger,
)


def _record(level=logging.INFO, context=None, exc_info=None):
    record = logging.LogRecord("doncash.test", level, __file__, 42, "Turn %s", ("decided",), exc_info)
    if context is not None:
        record.context = context
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "doncash.test"
        assert entry["msg"] == "Turn decided"
        assert "where" not in entry

    def test_chat_id_lifted_out_of_context(self):
        entry = json.loads(JSONFormatter().format(_record(context={"chat_id": "555@s.whatsapp.net", "stage": "welcome"})))
        assert entry["chat_id"] == "555@s.whatsapp.net"
        assert entry["context"] == {"stage": "welcome"}

    def test_warning_carries_location_and_exception(self):
        try:
            raise ValueError("bad snapshot")
        except ValueError:
            exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(_record(logging.ERROR, exc_info=exc_info)))
        assert entry["where"].endswith(":42")
        assert "bad snapshot" in entry["exception"]


class TestTextFormatter:
    def test_context_appended(self):
        line = TextFormatter().format(_record(context={"stage": "welcome"}))
        assert "doncash.test: Turn decided" in line
        assert line.endswith("stage=welcome")


class TestLoggers:
    def test_prefix(self):
        assert get_logger("webhook").name == "doncash.webhook"

    def test_chat_logger_merges_context(self):
        adapter = get_chat_logger("conversation", "555@s.whatsapp.net")
        assert isinstance(adapter, ChatLoggerAdapter)

        _, kwargs = adapter.process("x", {"context": {"intent": "lenguaje"}})

        assert kwargs["extra"]["context"] == {"chat_id": "555@s.whatsapp.net", "intent": "lenguaje"}
