from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass
class GlobalStats:
    """Observational counters, reported by the dashboard only."""

    total_messages: int = 0
    total_chats: int = 0
    active_chats: int = 0
    voice_chats: int = 0
    audio_messages: int = 0
    connection_status: str = "disconnected"
    is_authenticated: bool = False
    last_qr: Optional[str] = None
    last_activity: Optional[datetime] = None
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def record_reply(self, *, audio: bool = False) -> None:
        self.total_messages += 1
        if audio:
            self.audio_messages += 1
        self.last_activity = datetime.now(timezone.utc)

    def uptime_seconds(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        return max(int((now - self.start_time).total_seconds()), 0)
