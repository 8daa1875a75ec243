from enum import Enum
from typing import Optional

from zapbot.logging_config import get_logger
from zapbot.models import GlobalStats
from zapbot.services.alert_service import alert_critical, alert_warning
from zapbot.services.voice_session_service import VoiceSessionManager

logger = get_logger("connection")


class ConnectionEvent(str, Enum):
    QR = "qr"
    AUTHENTICATED = "authenticated"
    AUTH_FAILURE = "auth_failure"
    READY = "ready"
    DISCONNECTED = "disconnected"


async def handle_connection_event(
    event: ConnectionEvent,
    stats: GlobalStats,
    sessions: Optional[VoiceSessionManager],
    *,
    reason: Optional[str] = None,
    qr: Optional[str] = None,
) -> None:
    """Apply a gateway lifecycle signal. Only reporting fields and the session cache change."""
    if event == ConnectionEvent.QR:
        stats.last_qr = qr
        stats.connection_status = "waiting_qr"
        stats.is_authenticated = False
        logger.info("QR code received, waiting for pairing")

    elif event == ConnectionEvent.AUTHENTICATED:
        stats.is_authenticated = True
        stats.last_qr = None
        stats.connection_status = "authenticated"
        logger.info("WhatsApp authenticated")

    elif event == ConnectionEvent.AUTH_FAILURE:
        stats.is_authenticated = False
        stats.connection_status = "auth_failure"
        logger.error("WhatsApp authentication failed", extra={"context": {"reason": reason}})
        await alert_critical("WhatsApp authentication failed", {"reason": reason})

    elif event == ConnectionEvent.READY:
        stats.connection_status = "connected"
        stats.is_authenticated = True
        logger.info("WhatsApp client ready")

    elif event == ConnectionEvent.DISCONNECTED:
        stats.connection_status = "disconnected"
        stats.is_authenticated = False
        dropped = await sessions.invalidate_all() if sessions is not None else 0
        logger.warning(
            "WhatsApp client disconnected",
            extra={"context": {"reason": reason, "voice_sessions_dropped": dropped}},
        )
        await alert_warning("WhatsApp disconnected", {"reason": reason})
