"""In-memory conversation and voice state, keyed by WhatsApp JID.

Every mutation that can affect a live voice session goes through this store so
listeners (the voice session manager) learn about it in one place.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional

from zapbot.logging_config import get_logger
from zapbot.models import DEFAULT_VOICE, ConversationState, GlobalStats, VoiceIdentity, VoiceState

logger = get_logger("conversation_store")

PROMPT_PREVIEW_CHARS = 50


class ConfigChange(str, Enum):
    PROMPT = "prompt"
    VOICE_IDENTITY = "voice_identity"
    VOICE_ENABLED = "voice_enabled"
    VOICE_RESET = "voice_reset"
    EVICTED = "evicted"


ChangeListener = Callable[[str, ConfigChange], Awaitable[None]]


class ConversationStore:
    def __init__(
        self,
        *,
        default_system_prompt: str,
        default_voice: VoiceIdentity = DEFAULT_VOICE,
        stats: Optional[GlobalStats] = None,
    ):
        self.default_system_prompt = default_system_prompt
        self.default_voice = default_voice
        self.stats = stats or GlobalStats()
        self._conversations: dict[str, ConversationState] = {}
        self._voices: dict[str, VoiceState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._listeners: list[ChangeListener] = []

    # === LOOKUPS ===

    def get_or_create(self, conversation_id: str) -> ConversationState:
        """Return the conversation, creating a default one (and counting it) on first use."""
        state = self._conversations.get(conversation_id)
        if state is None:
            state = ConversationState(conversation_id=conversation_id, system_prompt=self.default_system_prompt)
            self._conversations[conversation_id] = state
            self.stats.total_chats += 1
            logger.info("Conversation created", extra={"context": {"chat_id": conversation_id}})
        return state

    def get(self, conversation_id: str) -> Optional[ConversationState]:
        return self._conversations.get(conversation_id)

    def get_or_create_voice(self, conversation_id: str) -> VoiceState:
        voice = self._voices.get(conversation_id)
        if voice is None:
            voice = VoiceState(voice_identity=self.default_voice)
            self._voices[conversation_id] = voice
        return voice

    def get_voice(self, conversation_id: str) -> Optional[VoiceState]:
        return self._voices.get(conversation_id)

    def conversation_ids(self) -> list[str]:
        return list(self._conversations)

    def __len__(self) -> int:
        return len(self._conversations)

    def lock(self, conversation_id: str) -> asyncio.Lock:
        """Per-conversation lock; different conversations never wait on each other."""
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    def touch(self, state: ConversationState) -> None:
        state.last_activity = datetime.now(timezone.utc)

    # === CHANGE NOTIFICATION ===

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    async def _notify(self, conversation_id: str, change: ConfigChange) -> None:
        for listener in self._listeners:
            await listener(conversation_id, change)

    # === MUTATIONS ===

    async def toggle_active(self, conversation_id: str) -> bool:
        state = self.get_or_create(conversation_id)
        state.active = not state.active
        self.stats.active_chats += 1 if state.active else -1
        return state.active

    async def set_system_prompt(self, conversation_id: str, prompt: str) -> str:
        """Replace the system prompt, returning the previous one."""
        state = self.get_or_create(conversation_id)
        old_prompt = state.system_prompt
        state.system_prompt = prompt
        await self._notify(conversation_id, ConfigChange.PROMPT)
        return old_prompt

    async def reset_system_prompt(self, conversation_id: str) -> str:
        return await self.set_system_prompt(conversation_id, self.default_system_prompt)

    def _set_voice_enabled(self, voice: VoiceState, enabled: bool) -> None:
        if voice.voice_enabled != enabled:
            self.stats.voice_chats += 1 if enabled else -1
        voice.voice_enabled = enabled
        voice.auto_voice = enabled

    async def toggle_voice(self, conversation_id: str) -> bool:
        voice = self.get_or_create_voice(conversation_id)
        self._set_voice_enabled(voice, not voice.voice_enabled)
        await self._notify(conversation_id, ConfigChange.VOICE_ENABLED)
        return voice.voice_enabled

    async def set_voice_identity(self, conversation_id: str, identity: VoiceIdentity) -> VoiceIdentity:
        """Switch voice (also turning voice mode on), returning the previous voice."""
        if not isinstance(identity, VoiceIdentity):
            raise ValueError(f"Unknown voice: {identity!r}")
        voice = self.get_or_create_voice(conversation_id)
        old_identity = voice.voice_identity
        voice.voice_identity = identity
        self._set_voice_enabled(voice, True)
        await self._notify(conversation_id, ConfigChange.VOICE_IDENTITY)
        return old_identity

    async def reset_voice(self, conversation_id: str) -> None:
        voice = self.get_or_create_voice(conversation_id)
        voice.voice_identity = self.default_voice
        self._set_voice_enabled(voice, False)
        await self._notify(conversation_id, ConfigChange.VOICE_RESET)

    # === EVICTION ===

    async def evict_idle(self, ttl_seconds: float, now: Optional[datetime] = None) -> list[str]:
        """Drop conversations idle for longer than ttl_seconds. Busy conversations are kept."""
        if ttl_seconds <= 0:
            return []
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(seconds=ttl_seconds)

        evicted = []
        for conversation_id, state in list(self._conversations.items()):
            if state.last_activity > cutoff:
                continue
            lock = self._locks.get(conversation_id)
            if lock is not None and lock.locked():
                continue

            del self._conversations[conversation_id]
            if state.active:
                self.stats.active_chats -= 1
            voice = self._voices.pop(conversation_id, None)
            if voice is not None and voice.voice_enabled:
                self.stats.voice_chats -= 1
            self._locks.pop(conversation_id, None)
            evicted.append(conversation_id)
            await self._notify(conversation_id, ConfigChange.EVICTED)

        if evicted:
            logger.info("Evicted idle conversations", extra={"context": {"count": len(evicted)}})
        return evicted

    # === REPORTING ===

    def snapshot(self) -> list[dict]:
        chats = []
        for conversation_id, state in self._conversations.items():
            voice = self._voices.get(conversation_id)
            chats.append(
                {
                    "id": conversation_id,
                    "active": state.active,
                    "has_custom_prompt": state.system_prompt != self.default_system_prompt,
                    "prompt_preview": state.system_prompt[:PROMPT_PREVIEW_CHARS],
                    "turn_count": len(state.transcript),
                    "voice_enabled": voice.voice_enabled if voice else False,
                    "voice_identity": (voice.voice_identity if voice else self.default_voice).value,
                    "last_activity": state.last_activity,
                }
            )
        return chats
