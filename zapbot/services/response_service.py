from dataclasses import dataclass
from enum import Enum
from typing import Optional

from zapbot.logging_config import chat_logger
from zapbot.models import ConversationState, Speaker, VoiceState
from zapbot.services import transcript_service
from zapbot.services.conversation_store import ConversationStore
from zapbot.services.llm.base import AIBackend, BackendError, BackendReply, ReplyKind
from zapbot.services.result import AI_ERROR, VOICE_ERROR, Result
from zapbot.services.voice_session_service import VoiceSessionManager
from zapbot.services.whatsapp_service import WhatsAppGateway

MSG_AI_ERROR = "Desculpe, ocorreu um erro ao processar sua mensagem. Tente novamente em alguns momentos."
AUDIO_FAILED_NOTICE = "⚠️ Não consegui gerar o áudio desta resposta."
AUDIO_TURN_TEXT = "[áudio]"
AUDIO_INSTRUCTION = "Responda à mensagem de voz a seguir."


class AudioReplyPolicy(str, Enum):
    # Voice messages are always answered in voice
    ALWAYS = "always"
    # Voice messages follow the chat's /voz setting like text messages do
    FOLLOW_TOGGLE = "follow_toggle"


class ReplyChannel(str, Enum):
    TEXT = "text"
    AUDIO = "audio"


@dataclass
class GenerationOutcome:
    ok: bool
    reply: Optional[str] = None
    channel: Optional[ReplyChannel] = None
    delivered: bool = False
    error: Optional[str] = None


def with_audio_notice(text: Optional[str]) -> str:
    if not text:
        return AUDIO_FAILED_NOTICE
    return f"{text}\n\n{AUDIO_FAILED_NOTICE}"


class ResponseGenerator:
    """Calls the AI backend for ordinary messages and delivers the reply as text or voice."""

    def __init__(
        self,
        store: ConversationStore,
        backend: AIBackend,
        transport: WhatsAppGateway,
        sessions: Optional[VoiceSessionManager] = None,
        *,
        context_window: int = 20,
        audio_reply_policy: AudioReplyPolicy = AudioReplyPolicy.ALWAYS,
    ):
        self.store = store
        self.backend = backend
        self.transport = transport
        self.sessions = sessions
        self.context_window = context_window
        self.audio_reply_policy = AudioReplyPolicy(audio_reply_policy)

    # === DELIVERY ===

    async def send_text(self, conversation_id: str, text: str) -> bool:
        sent = await self.transport.send_text(conversation_id, text)
        if not sent:
            chat_logger("response", conversation_id).warning("Reply dropped: text delivery failed")
        return sent

    async def _deliver(
        self,
        conversation_id: str,
        text: Optional[str],
        speech: Optional[BackendReply],
    ) -> tuple[ReplyChannel, bool]:
        if speech is not None and speech.has_audio:
            if await self.transport.send_audio(conversation_id, speech.audio, speech.mime_type):
                return ReplyChannel.AUDIO, True
            chat_logger("response", conversation_id).warning("Audio delivery failed, falling back to text")
            text = with_audio_notice(text)
        return ReplyChannel.TEXT, await self.send_text(conversation_id, text or "")

    async def _apologize(self, conversation_id: str, error: Optional[str], code: str) -> GenerationOutcome:
        delivered = await self.send_text(conversation_id, MSG_AI_ERROR)
        return GenerationOutcome(
            ok=False,
            reply=MSG_AI_ERROR,
            channel=ReplyChannel.TEXT,
            delivered=delivered,
            error=f"{code}: {error}",
        )

    # === BACKEND ===

    async def _call_backend(self, prompt: str) -> Result[str]:
        try:
            return Result.success(await self.backend.generate_text(prompt))
        except BackendError as e:
            return Result.failure(str(e), AI_ERROR)

    async def _speak(self, state: ConversationState, voice: VoiceState, text: str) -> Optional[BackendReply]:
        if self.sessions is None:
            return None
        session = await self.sessions.get_or_create_session(
            state.conversation_id, state.system_prompt, voice.voice_identity
        )
        if not session.ok:
            return None
        return await self.sessions.send_text(state.conversation_id, session.value, text)

    # === TEXT PATH ===

    async def generate(self, conversation_id: str, user_text: str) -> GenerationOutcome:
        """Answer a non-empty text message."""
        log = chat_logger("response", conversation_id)
        state = self.store.get_or_create(conversation_id)
        voice = self.store.get_or_create_voice(conversation_id)

        history = transcript_service.windowed(state, self.context_window)
        prompt = transcript_service.build_prompt(state.system_prompt, history, user_text)

        result = await self._call_backend(prompt)
        if not result.ok:
            log.error("Generation failed", context={"error": result.error})
            return await self._apologize(conversation_id, result.error, result.error_code)

        response_text = result.value
        transcript_service.append(state, Speaker.USER, user_text)
        transcript_service.append(state, Speaker.BOT, response_text)

        speech = None
        text_to_send = response_text
        if voice.wants_voice:
            speech = await self._speak(state, voice, response_text)
            if speech is None:
                text_to_send = with_audio_notice(response_text)

        channel, delivered = await self._deliver(conversation_id, text_to_send, speech)
        self.store.stats.record_reply()
        log.info(
            "Reply generated",
            context={"channel": channel.value, "delivered": delivered},
        )
        return GenerationOutcome(ok=True, reply=response_text, channel=channel, delivered=delivered)

    # === AUDIO PATH ===

    def _reply_in_voice(self, voice: VoiceState) -> bool:
        if self.audio_reply_policy == AudioReplyPolicy.ALWAYS:
            return True
        return voice.wants_voice

    def _audio_context(self, state: ConversationState) -> str:
        history = transcript_service.windowed(state, self.context_window)
        if not history:
            return AUDIO_INSTRUCTION
        return (
            f"Contexto da conversa anterior:\n{transcript_service.render_turns(history)}\n\n{AUDIO_INSTRUCTION}"
        )

    async def generate_from_audio(
        self,
        conversation_id: str,
        audio: bytes,
        mime_type: Optional[str] = None,
    ) -> GenerationOutcome:
        """Answer a voice message through the conversation's voice session."""
        log = chat_logger("response", conversation_id)
        if self.sessions is None:
            return await self._apologize(conversation_id, "voice sessions are not available", VOICE_ERROR)

        state = self.store.get_or_create(conversation_id)
        voice = self.store.get_or_create_voice(conversation_id)

        session = await self.sessions.get_or_create_session(conversation_id, state.system_prompt, voice.voice_identity)
        if not session.ok:
            return await self._apologize(conversation_id, session.error, session.error_code)

        result = await self.sessions.send_audio(
            conversation_id, session.value, audio, mime_type=mime_type, context=self._audio_context(state)
        )
        if not result.ok:
            return await self._apologize(conversation_id, result.error, result.error_code)

        reply = result.value
        if reply.kind == ReplyKind.EMPTY:
            return await self._apologize(conversation_id, "empty voice reply", VOICE_ERROR)

        transcript_service.append(state, Speaker.USER, AUDIO_TURN_TEXT)
        transcript_service.append(state, Speaker.BOT, reply.text or AUDIO_TURN_TEXT)

        # An audio-only reply can only be delivered as audio
        if self._reply_in_voice(voice) or not reply.text:
            text_to_send = reply.text if reply.has_audio else with_audio_notice(reply.text)
            channel, delivered = await self._deliver(conversation_id, text_to_send, reply)
        else:
            channel, delivered = await self._deliver(conversation_id, reply.text, None)

        self.store.stats.record_reply(audio=True)
        log.info(
            "Voice reply generated",
            context={"channel": channel.value, "delivered": delivered},
        )
        return GenerationOutcome(ok=True, reply=reply.text, channel=channel, delivered=delivered)
