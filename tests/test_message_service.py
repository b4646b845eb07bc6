import asyncio
from datetime import timedelta

import pytest

from app.services.message_service import BotMessenger, SentMessageLog, matches_bot_signature
from app.services.transport_service import TransportError

from tests.conftest import CUSTOMER_CHAT, MONDAY_NOON


class TestSentMessageLog:
    def test_keys_expire(self, clock):
        log = SentMessageLog(clock, ttl_seconds=60)
        log.remember("msg-1")
        assert "msg-1" in log

        clock.set_mock_now(MONDAY_NOON + timedelta(seconds=61))
        assert "msg-1" not in log
        assert len(log) == 0


class TestBotMessenger:
    def test_send_remembers_message_id(self, transport, clock):
        messenger = BotMessenger(transport, clock)
        message_id = asyncio.run(messenger.send(CUSTOMER_CHAT, "Hola"))

        assert message_id == "msg-1"
        assert transport.sent == [(CUSTOMER_CHAT, "Hola")]
        assert messenger.was_bot_generated("msg-1", "anything") is True

    def test_echo_matched_by_text_before_id_is_known(self, transport, clock):
        messenger = BotMessenger(transport, clock)
        asyncio.run(messenger.send(CUSTOMER_CHAT, "Te responderemos pronto"))

        assert messenger.was_bot_generated("unknown-id", "Te responderemos pronto", CUSTOMER_CHAT) is True
        assert messenger.was_bot_generated("unknown-id", "Te responderemos pronto", "other@s.whatsapp.net") is False

    def test_human_message_is_not_bot(self, transport, clock):
        messenger = BotMessenger(transport, clock)
        assert messenger.was_bot_generated("abc", "Ya te llamo", CUSTOMER_CHAT) is False

    def test_failed_send_propagates(self, transport, clock):
        transport.fail = True
        messenger = BotMessenger(transport, clock)
        with pytest.raises(TransportError):
            asyncio.run(messenger.send(CUSTOMER_CHAT, "Hola"))


class TestSignatureHeuristic:
    def test_bot_closing_matches(self):
        assert matches_bot_signature("...\n\nWynwood baby!!!") is True

    def test_human_typing_the_slogan_is_misclassified(self, transport, clock):
        # Known false positive: the fallback can't tell a human using the slogan from the bot.
        messenger = BotMessenger(transport, clock)
        assert messenger.was_bot_generated(None, "Wynwood baby!!!", CUSTOMER_CHAT) is True

    def test_empty_text(self):
        assert matches_bot_signature(None) is False
        assert matches_bot_signature("") is False
