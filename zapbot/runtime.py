"""Wires the in-memory bot state and its collaborators together."""

from dataclasses import dataclass

from fastapi import Request

from zapbot.config import Settings
from zapbot.models import DEFAULT_VOICE, VoiceIdentity
from zapbot.services.command_service import CommandInterpreter
from zapbot.services.conversation_store import ConversationStore
from zapbot.services.inbound_service import InboundRouter
from zapbot.services.llm import AIBackend, GeminiProvider
from zapbot.services.media_service import MediaCache
from zapbot.services.response_service import AudioReplyPolicy, ResponseGenerator
from zapbot.services.voice_session_service import VoiceSessionManager
from zapbot.services.whatsapp_service import WhatsAppGateway


@dataclass
class BotRuntime:
    settings: Settings
    store: ConversationStore
    backend: AIBackend
    sessions: VoiceSessionManager
    media: MediaCache
    transport: WhatsAppGateway
    commands: CommandInterpreter
    generator: ResponseGenerator
    router: InboundRouter


def build_runtime(settings: Settings) -> BotRuntime:
    default_voice = VoiceIdentity.parse(settings.default_voice) or DEFAULT_VOICE
    store = ConversationStore(default_system_prompt=settings.default_system_prompt, default_voice=default_voice)

    backend = GeminiProvider(
        settings.gemini_api_key,
        base_url=settings.gemini_base_url,
        text_model=settings.gemini_text_model,
        audio_model=settings.gemini_audio_model,
        tts_model=settings.gemini_tts_model,
        timeout_seconds=settings.gemini_timeout_seconds,
    )
    sessions = VoiceSessionManager(backend)
    store.subscribe(sessions.on_config_change)

    media = MediaCache(
        secret=settings.media_signing_secret,
        public_base_url=settings.public_base_url,
        ttl_seconds=settings.media_url_ttl_seconds,
    )
    transport = WhatsAppGateway(
        api_url=settings.whatsapp_api_url,
        media_api_url=settings.whatsapp_media_api_url,
        token=settings.whatsapp_token,
        instance_id=settings.whatsapp_instance_id,
        media_cache=media,
        allowed_hosts=settings.whatsapp_media_hosts.split(","),
        max_audio_bytes=int(settings.max_audio_mb * 1024 * 1024),
    )

    commands = CommandInterpreter(store, sessions, max_prompt_length=settings.max_prompt_length)
    generator = ResponseGenerator(
        store,
        backend,
        transport,
        sessions,
        context_window=settings.context_window,
        audio_reply_policy=AudioReplyPolicy(settings.audio_reply_policy),
    )
    router = InboundRouter(store, commands, generator, transport)

    return BotRuntime(
        settings=settings,
        store=store,
        backend=backend,
        sessions=sessions,
        media=media,
        transport=transport,
        commands=commands,
        generator=generator,
        router=router,
    )


def get_runtime(request: Request) -> BotRuntime:
    return request.app.state.runtime
