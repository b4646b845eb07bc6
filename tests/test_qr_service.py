import asyncio
from datetime import timedelta
from unittest.mock import MagicMock, Mock, patch

from app.services.email_service import EmailService
from app.services.qr_service import (
    CredentialChallengeManager,
    EmailChallengeChannel,
    TelegramChallengeChannel,
    build_challenge_channels,
    png_data_url,
    render_qr_png,
)
from app.services.telegram_service import TelegramService

from tests.conftest import MONDAY_NOON

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class TestCredentialChallengeManager:
    def test_forwards_to_every_channel(self, clock):
        telegram = Mock(spec=TelegramService)
        telegram.broadcast_photo.return_value = 1
        email = Mock(spec=EmailService)
        email.send.return_value = False
        manager = CredentialChallengeManager(
            clock,
            [TelegramChallengeChannel(telegram, ["42"]), EmailChallengeChannel(email, ["ops@example.com"])],
        )

        results = asyncio.run(manager.on_challenge("2@abc"))

        assert results == {"telegram": True, "email": False}
        chat_ids, png, caption = telegram.broadcast_photo.call_args.args
        assert chat_ids == ["42"]
        assert png.startswith(PNG_SIGNATURE)
        assert "60 segundos" in caption
        telegram.broadcast.assert_not_called()
        assert email.send.call_args.kwargs["attachments"] == [("whatsapp-qr.png", png, "image/png")]

    def test_unrenderable_challenge_falls_back_to_text(self, clock):
        telegram = Mock(spec=TelegramService)
        telegram.broadcast.return_value = 1
        manager = CredentialChallengeManager(clock, [TelegramChallengeChannel(telegram, ["42"])])

        with patch("app.services.qr_service.render_qr_png", side_effect=ValueError("too long")):
            assert asyncio.run(manager.on_challenge("2@abc")) == {"telegram": True}

        assert manager.current.png is None
        telegram.broadcast_photo.assert_not_called()
        assert "2@abc" in telegram.broadcast.call_args.args[1]

    def test_channel_crash_does_not_block_others(self, clock):
        broken = Mock(spec=TelegramChallengeChannel)
        broken.name = "telegram"
        broken.deliver.side_effect = RuntimeError("boom")
        email = Mock(spec=EmailService)
        email.send.return_value = True
        manager = CredentialChallengeManager(clock, [broken, EmailChallengeChannel(email, ["a@b.c"])])

        assert asyncio.run(manager.on_challenge("2@abc")) == {"telegram": False, "email": True}

    def test_freshness_window(self, clock):
        manager = CredentialChallengeManager(clock, lifetime_seconds=60)
        asyncio.run(manager.on_challenge("2@abc"))

        clock.set_mock_now(MONDAY_NOON + timedelta(seconds=45))
        status = manager.get_status()
        assert status.valid is True
        assert status.age_seconds == 45
        assert status.expires_in_seconds == 15
        assert manager.current_if_fresh().data == "2@abc"

        clock.set_mock_now(MONDAY_NOON + timedelta(seconds=60))
        assert manager.get_status().valid is False
        assert manager.current_if_fresh() is None

    def test_status_without_challenge(self, clock):
        status = CredentialChallengeManager(clock).get_status()
        assert status.has_challenge is False
        assert status.valid is False

    def test_connected_clears_challenge_and_notifies(self, clock):
        telegram = Mock(spec=TelegramService)
        telegram.broadcast.return_value = 1
        manager = CredentialChallengeManager(clock, [TelegramChallengeChannel(telegram, ["42"])])
        asyncio.run(manager.on_challenge("2@abc"))

        asyncio.run(manager.notify_connection_status(True))

        assert manager.current is None
        assert manager.get_status().connected is True
        assert "conectado" in telegram.broadcast.call_args.args[1]


class TestRendering:
    def test_png_is_rendered(self):
        png = render_qr_png("2@abc,def,ghi")
        assert png.startswith(PNG_SIGNATURE)
        assert len(png) > 100

    def test_data_url(self):
        assert png_data_url(b"\x89PNG") == "data:image/png;base64,iVBORw=="


class TestBuildChannels:
    def test_nothing_enabled(self, settings):
        assert build_challenge_channels(settings) == []

    def test_telegram_and_email(self, settings):
        settings.qr_telegram_enabled = True
        settings.telegram_bot_token = "bot"
        settings.telegram_chat_ids = "1, 2"
        settings.qr_email_enabled = True
        settings.qr_email_to = "a@example.com,b@example.com"

        channels = build_challenge_channels(settings)

        assert [channel.name for channel in channels] == ["telegram", "email"]
        assert channels[0].chat_ids == ["1", "2"]
        assert channels[1].recipients == ["a@example.com", "b@example.com"]

    def test_telegram_needs_chat_ids(self, settings):
        settings.qr_telegram_enabled = True
        settings.telegram_bot_token = "bot"
        assert build_challenge_channels(settings) == []


class TestTelegramService:
    @patch("app.services.telegram_service.httpx.Client")
    def test_broadcast_counts_accepted(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.return_value.json.side_effect = [{"ok": True}, {"ok": False, "description": "blocked"}]

        assert TelegramService("bot").broadcast(["1", "2"], "hola") == 1
        assert mock_client.post.call_args_list[0].args[0] == "https://api.telegram.org/botbot/sendMessage"

    @patch("app.services.telegram_service.httpx.Client")
    def test_broadcast_photo_uploads_png(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.return_value.json.return_value = {"ok": True}

        assert TelegramService("bot").broadcast_photo(["1"], b"png-bytes", "Escanea") == 1

        call = mock_client.post.call_args
        assert call.args[0] == "https://api.telegram.org/botbot/sendPhoto"
        assert call.kwargs["data"] == {"chat_id": "1", "caption": "Escanea", "parse_mode": "Markdown"}
        assert call.kwargs["files"] == {"photo": ("qr.png", b"png-bytes", "image/png")}


class TestEmailService:
    @patch("app.services.email_service.smtplib.SMTP")
    def test_starttls_login_and_send(self, mock_smtp_class):
        smtp = mock_smtp_class.return_value.__enter__.return_value
        service = EmailService("smtp.example.com", 587, "bot@example.com", user="bot", password="pw")

        assert service.send(["ops@example.com"], "QR", "body") is True

        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("bot", "pw")
        message = smtp.send_message.call_args.args[0]
        assert message["To"] == "ops@example.com"
        assert message["Subject"] == "QR"

    @patch("app.services.email_service.smtplib.SMTP")
    def test_png_attachment(self, mock_smtp_class):
        smtp = mock_smtp_class.return_value.__enter__.return_value
        service = EmailService("smtp.example.com", 587, "bot@example.com")

        assert service.send(["ops@example.com"], "QR", "body", attachments=[("qr.png", b"png-bytes", "image/png")])

        message = smtp.send_message.call_args.args[0]
        attachment = next(message.iter_attachments())
        assert attachment.get_filename() == "qr.png"
        assert attachment.get_content_type() == "image/png"
        assert attachment.get_content() == b"png-bytes"

    @patch("app.services.email_service.smtplib.SMTP_SSL")
    def test_failure_returns_false(self, mock_smtp_class):
        mock_smtp_class.side_effect = OSError("refused")
        service = EmailService("smtp.example.com", 465, "bot@example.com", use_ssl=True)
        assert service.send(["ops@example.com"], "QR", "body") is False

    def test_no_recipients(self):
        assert EmailService("h", 25, "a@b.c").send([], "s", "b") is False
