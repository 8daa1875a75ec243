from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class StatsResponse(BaseModel):
    total_messages: int
    total_chats: int
    active_chats: int
    voice_chats: int
    audio_messages: int
    live_voice_sessions: int
    connection_status: str
    is_authenticated: bool
    last_qr: Optional[str] = None
    last_activity: Optional[datetime] = None
    start_time: datetime
    uptime_seconds: int
    uptime: str
    timestamp: datetime


class ChatSummary(BaseModel):
    id: str
    active: bool
    has_custom_prompt: bool
    prompt_preview: str
    turn_count: int
    voice_enabled: bool
    voice_identity: str
    voice_session: str
    voice_session_error: Optional[str] = None
    last_activity: datetime


class ChatListResponse(BaseModel):
    total: int
    chats: list[ChatSummary]
