from dataclasses import dataclass
from enum import Enum
from typing import Optional

from zapbot.logging_config import chat_logger, get_logger
from zapbot.services.command_service import CommandInterpreter
from zapbot.services.conversation_store import ConversationStore
from zapbot.services.response_service import ResponseGenerator
from zapbot.services.whatsapp_service import AudioAttachment, WhatsAppGateway

logger = get_logger("inbound")

GROUP_JID_SUFFIX = "@g.us"

MSG_ACTIVATION_REQUIRED = "🤖 O bot está desativado nesta conversa. Envie /bot para ativá-lo."
MSG_AUDIO_UNAVAILABLE = "🎧 Não consegui baixar o seu áudio. Pode enviar novamente?"


class InboundStatus(str, Enum):
    IGNORED_SELF = "ignored_self"
    IGNORED_GROUP = "ignored_group"
    IGNORED_EMPTY = "ignored_empty"
    COMMAND = "command"
    GENERATED = "generated"
    INACTIVE = "inactive"
    ACTIVATION_REQUIRED = "activation_required"
    AUDIO_UNAVAILABLE = "audio_unavailable"
    AI_ERROR = "ai_error"
    ERROR = "error"


@dataclass
class InboundEvent:
    chat_id: str
    body: str = ""
    is_group: bool = False
    from_me: bool = False
    audio: Optional[AudioAttachment] = None
    message_id: Optional[str] = None

    @property
    def has_audio(self) -> bool:
        return self.audio is not None

    @property
    def from_group(self) -> bool:
        return self.is_group or self.chat_id.endswith(GROUP_JID_SUFFIX)


@dataclass
class InboundOutcome:
    status: InboundStatus
    reply: Optional[str] = None


class InboundRouter:
    """Entry point for every inbound WhatsApp message."""

    def __init__(
        self,
        store: ConversationStore,
        commands: CommandInterpreter,
        generator: ResponseGenerator,
        transport: WhatsAppGateway,
    ):
        self.store = store
        self.commands = commands
        self.generator = generator
        self.transport = transport

    async def handle(self, event: InboundEvent) -> InboundOutcome:
        try:
            return await self._route(event)
        except Exception:
            logger.exception(
                "Unhandled error while processing message",
                extra={"context": {"chat_id": event.chat_id, "message_id": event.message_id}},
            )
            return InboundOutcome(status=InboundStatus.ERROR)

    async def _route(self, event: InboundEvent) -> InboundOutcome:
        if event.from_me:
            return InboundOutcome(status=InboundStatus.IGNORED_SELF)
        if event.from_group:
            logger.debug("Group message ignored", extra={"context": {"chat_id": event.chat_id}})
            return InboundOutcome(status=InboundStatus.IGNORED_GROUP)

        if event.has_audio:
            async with self.store.lock(event.chat_id):
                return await self._route_audio(event)

        text = (event.body or "").strip()
        if not text:
            return InboundOutcome(status=InboundStatus.IGNORED_EMPTY)

        async with self.store.lock(event.chat_id):
            return await self._route_text(event.chat_id, text)

    async def _route_audio(self, event: InboundEvent) -> InboundOutcome:
        state = self.store.get_or_create(event.chat_id)
        self.store.touch(state)
        if not state.active:
            await self.generator.send_text(event.chat_id, MSG_ACTIVATION_REQUIRED)
            return InboundOutcome(status=InboundStatus.ACTIVATION_REQUIRED, reply=MSG_ACTIVATION_REQUIRED)

        audio = await self.transport.download_audio(event.audio)
        if not audio:
            await self.generator.send_text(event.chat_id, MSG_AUDIO_UNAVAILABLE)
            return InboundOutcome(status=InboundStatus.AUDIO_UNAVAILABLE, reply=MSG_AUDIO_UNAVAILABLE)

        outcome = await self.generator.generate_from_audio(event.chat_id, audio, event.audio.mime_type)
        status = InboundStatus.GENERATED if outcome.ok else InboundStatus.AI_ERROR
        return InboundOutcome(status=status, reply=outcome.reply)

    async def _route_text(self, chat_id: str, text: str) -> InboundOutcome:
        log = chat_logger("inbound", chat_id)
        state = self.store.get_or_create(chat_id)
        voice = self.store.get_or_create_voice(chat_id)
        self.store.touch(state)

        command = await self.commands.interpret(text, state, voice)
        if command.handled:
            log.info("Command handled", context={"action": command.action})
            await self.generator.send_text(chat_id, command.reply)
            return InboundOutcome(status=InboundStatus.COMMAND, reply=command.reply)

        if not state.active:
            return InboundOutcome(status=InboundStatus.INACTIVE)

        outcome = await self.generator.generate(chat_id, text)
        status = InboundStatus.GENERATED if outcome.ok else InboundStatus.AI_ERROR
        return InboundOutcome(status=status, reply=outcome.reply)
