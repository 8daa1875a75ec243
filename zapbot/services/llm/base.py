from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from zapbot.models import VoiceIdentity


class BackendError(Exception):
    """Raised by providers when the AI backend call fails."""


class ReplyKind(str, Enum):
    TEXT = "text"
    AUDIO = "audio"
    BOTH = "both"
    EMPTY = "empty"


@dataclass
class BackendReply:
    """Text and/or audio produced by the backend. Audio bytes are opaque."""

    text: Optional[str] = None
    audio: Optional[bytes] = None
    mime_type: Optional[str] = None

    @property
    def kind(self) -> ReplyKind:
        if self.text and self.audio:
            return ReplyKind.BOTH
        if self.audio:
            return ReplyKind.AUDIO
        if self.text:
            return ReplyKind.TEXT
        return ReplyKind.EMPTY

    @property
    def has_audio(self) -> bool:
        return bool(self.audio)


@dataclass
class VoiceSession:
    """Handle to a backend voice exchange, fixed to one prompt and voice."""

    system_prompt: str
    voice_identity: VoiceIdentity
    transport: Any = None


class AIBackend(ABC):
    """Abstract base class for generative-AI backends."""

    @abstractmethod
    async def generate_text(self, prompt: str) -> str:
        """Text-only generation."""

    @abstractmethod
    async def open_voice_session(self, system_prompt: str, voice_identity: VoiceIdentity) -> VoiceSession:
        """Open a session for audio exchanges."""

    @abstractmethod
    async def exchange(
        self,
        session: VoiceSession,
        *,
        text: Optional[str] = None,
        audio: Optional[bytes] = None,
        mime_type: Optional[str] = None,
        context: Optional[str] = None,
    ) -> BackendReply:
        """Send text (speech synthesis) or audio (spoken reply) through a session."""

    async def close_session(self, session: VoiceSession) -> None:
        """Release resources held by a session."""
        return None
