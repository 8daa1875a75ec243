import asyncio
from unittest.mock import AsyncMock, patch

from conftest import CHAT_ID

from zapbot.models import GlobalStats
from zapbot.services.connection_service import ConnectionEvent, handle_connection_event


class TestConnectionEvents:
    def test_qr_then_ready(self):
        stats = GlobalStats()

        asyncio.run(handle_connection_event(ConnectionEvent.QR, stats, None, qr="2@abc"))
        assert stats.connection_status == "waiting_qr"
        assert stats.last_qr == "2@abc"

        asyncio.run(handle_connection_event(ConnectionEvent.AUTHENTICATED, stats, None))
        asyncio.run(handle_connection_event(ConnectionEvent.READY, stats, None))
        assert stats.connection_status == "connected"
        assert stats.is_authenticated is True
        assert stats.last_qr is None

    @patch("zapbot.services.connection_service.alert_critical", new_callable=AsyncMock)
    def test_auth_failure_alerts(self, mock_alert):
        stats = GlobalStats(is_authenticated=True)

        asyncio.run(handle_connection_event(ConnectionEvent.AUTH_FAILURE, stats, None, reason="bad session"))

        assert stats.connection_status == "auth_failure"
        assert stats.is_authenticated is False
        mock_alert.assert_awaited_once()

    @patch("zapbot.services.connection_service.alert_warning", new_callable=AsyncMock)
    def test_disconnect_drops_voice_sessions(self, mock_alert, store, sessions):
        asyncio.run(sessions.get_or_create_session(CHAT_ID, "Prompt", store.default_voice))
        stats = store.stats
        stats.connection_status = "connected"

        asyncio.run(handle_connection_event(ConnectionEvent.DISCONNECTED, stats, sessions, reason="NAVIGATION"))

        assert stats.connection_status == "disconnected"
        assert sessions.active_count() == 0
        mock_alert.assert_awaited_once_with("WhatsApp disconnected", {"reason": "NAVIGATION"})

    @patch("zapbot.services.connection_service.alert_warning", new_callable=AsyncMock)
    def test_disconnect_keeps_conversations(self, mock_alert, store, sessions):
        asyncio.run(store.toggle_active(CHAT_ID))

        asyncio.run(handle_connection_event(ConnectionEvent.DISCONNECTED, store.stats, sessions))

        assert store.get(CHAT_ID).active is True
