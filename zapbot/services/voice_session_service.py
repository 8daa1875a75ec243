from dataclasses import dataclass
from typing import Optional

from zapbot.logging_config import get_logger
from zapbot.models import VoiceIdentity
from zapbot.services.conversation_store import ConfigChange
from zapbot.services.llm.base import AIBackend, BackendError, BackendReply, VoiceSession
from zapbot.services.result import VOICE_ERROR, Result
from zapbot.services.state_machine import VoiceSessionStatus, drop_session, fail_session, open_session

logger = get_logger("voice_sessions")


@dataclass
class SessionEntry:
    status: VoiceSessionStatus = VoiceSessionStatus.ABSENT
    session: Optional[VoiceSession] = None
    last_error: Optional[str] = None


class VoiceSessionManager:
    """Caches one backend voice session per conversation.

    Sessions are dropped when the conversation's prompt or voice changes
    (see on_config_change) and whenever a backend call through them fails.
    """

    def __init__(self, backend: AIBackend):
        self.backend = backend
        self._entries: dict[str, SessionEntry] = {}

    def status(self, conversation_id: str) -> VoiceSessionStatus:
        entry = self._entries.get(conversation_id)
        return entry.status if entry else VoiceSessionStatus.ABSENT

    def last_error(self, conversation_id: str) -> Optional[str]:
        entry = self._entries.get(conversation_id)
        return entry.last_error if entry else None

    def has_session(self, conversation_id: str) -> bool:
        return self.status(conversation_id) == VoiceSessionStatus.ACTIVE

    def active_count(self) -> int:
        return sum(1 for entry in self._entries.values() if entry.status == VoiceSessionStatus.ACTIVE)

    async def _close(self, conversation_id: str, session: Optional[VoiceSession]) -> None:
        if session is None:
            return
        try:
            await self.backend.close_session(session)
        except Exception as e:
            logger.warning(
                "Failed to close voice session",
                extra={"context": {"chat_id": conversation_id, "error": str(e)}},
            )

    async def get_or_create_session(
        self,
        conversation_id: str,
        system_prompt: str,
        voice_identity: VoiceIdentity,
    ) -> Result[VoiceSession]:
        entry = self._entries.setdefault(conversation_id, SessionEntry())

        if entry.status == VoiceSessionStatus.ACTIVE and entry.session is not None:
            cached = entry.session
            if cached.system_prompt == system_prompt and cached.voice_identity == voice_identity:
                return Result.success(cached)
            await self.invalidate(conversation_id)
            entry = self._entries.setdefault(conversation_id, SessionEntry())

        try:
            session = await self.backend.open_voice_session(system_prompt, voice_identity)
        except BackendError as e:
            if entry.status != VoiceSessionStatus.ERROR:
                entry.status = fail_session(entry.status)
            entry.last_error = str(e)
            logger.error(
                "Voice session open failed",
                extra={"context": {"chat_id": conversation_id, "error": str(e)}},
            )
            return Result.failure(str(e), VOICE_ERROR)

        entry.status = open_session(entry.status)
        entry.session = session
        entry.last_error = None
        return Result.success(session)

    async def invalidate(self, conversation_id: str) -> None:
        """Drop the cached session, if any."""
        entry = self._entries.pop(conversation_id, None)
        if entry is None:
            return
        drop_session(entry.status)
        await self._close(conversation_id, entry.session)

    async def invalidate_all(self) -> int:
        conversation_ids = list(self._entries)
        for conversation_id in conversation_ids:
            await self.invalidate(conversation_id)
        if conversation_ids:
            logger.info("All voice sessions discarded", extra={"context": {"count": len(conversation_ids)}})
        return len(conversation_ids)

    async def _fail(self, conversation_id: str, error: str) -> None:
        entry = self._entries.get(conversation_id)
        if entry is None:
            return
        session = entry.session
        if entry.status != VoiceSessionStatus.ERROR:
            entry.status = fail_session(entry.status)
        entry.session = None
        entry.last_error = error
        await self._close(conversation_id, session)

    async def on_config_change(self, conversation_id: str, change: ConfigChange) -> None:
        """Store listener: any prompt/voice change makes the cached session stale."""
        if conversation_id in self._entries:
            logger.info(
                "Voice session invalidated",
                extra={"context": {"chat_id": conversation_id, "reason": change.value}},
            )
        await self.invalidate(conversation_id)

    async def send_audio(
        self,
        conversation_id: str,
        session: VoiceSession,
        audio: bytes,
        mime_type: Optional[str] = None,
        context: Optional[str] = None,
    ) -> Result[BackendReply]:
        """Audio in, spoken answer out. Bytes are passed through untouched."""
        try:
            reply = await self.backend.exchange(session, audio=audio, mime_type=mime_type, context=context)
        except BackendError as e:
            logger.error(
                "Voice exchange failed",
                extra={"context": {"chat_id": conversation_id, "error": str(e)}},
            )
            await self._fail(conversation_id, str(e))
            return Result.failure(str(e), VOICE_ERROR)
        return Result.success(reply)

    async def send_text(self, conversation_id: str, session: VoiceSession, text: str) -> Optional[BackendReply]:
        """Speech synthesis for a text reply. None when no audio could be produced."""
        try:
            reply = await self.backend.exchange(session, text=text)
        except BackendError as e:
            logger.error(
                "Speech synthesis failed",
                extra={"context": {"chat_id": conversation_id, "error": str(e)}},
            )
            await self._fail(conversation_id, str(e))
            return None
        if not reply.has_audio:
            return None
        return reply
