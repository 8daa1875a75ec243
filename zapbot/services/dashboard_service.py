from datetime import datetime, timezone
from typing import Optional

import psutil

from zapbot.services.conversation_store import ConversationStore
from zapbot.services.voice_session_service import VoiceSessionManager


def process_memory() -> dict:
    """Resident and virtual memory of this process, in bytes."""
    info = psutil.Process().memory_info()
    return {"rss": info.rss, "vms": info.vms}


def format_uptime(seconds: int) -> str:
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m {seconds % 60}s"


def build_stats(store: ConversationStore, sessions: Optional[VoiceSessionManager] = None) -> dict:
    stats = store.stats
    uptime = stats.uptime_seconds()
    return {
        "total_messages": stats.total_messages,
        "total_chats": stats.total_chats,
        "active_chats": stats.active_chats,
        "voice_chats": stats.voice_chats,
        "audio_messages": stats.audio_messages,
        "live_voice_sessions": sessions.active_count() if sessions is not None else 0,
        "connection_status": stats.connection_status,
        "is_authenticated": stats.is_authenticated,
        "last_qr": stats.last_qr,
        "last_activity": stats.last_activity,
        "start_time": stats.start_time,
        "uptime_seconds": uptime,
        "uptime": format_uptime(uptime),
        "timestamp": datetime.now(timezone.utc),
    }


def build_chats(store: ConversationStore, sessions: Optional[VoiceSessionManager] = None) -> list[dict]:
    chats = store.snapshot()
    for chat in chats:
        if sessions is None:
            chat["voice_session"] = "absent"
            chat["voice_session_error"] = None
            continue
        chat["voice_session"] = sessions.status(chat["id"]).value
        chat["voice_session_error"] = sessions.last_error(chat["id"])
    return chats
