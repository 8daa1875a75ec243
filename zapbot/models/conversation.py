from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Speaker(str, Enum):
    USER = "user"
    BOT = "bot"
    SYSTEM = "system"


@dataclass
class Turn:
    speaker: Speaker
    text: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ConversationState:
    conversation_id: str  # WhatsApp JID, e.g. 5511999999999@c.us
    system_prompt: str
    active: bool = False
    transcript: list[Turn] = field(default_factory=list)  # append-only
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_activity: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
