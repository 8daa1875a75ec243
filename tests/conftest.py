from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from zapbot.config import Settings
from zapbot.main import app
from zapbot.runtime import BotRuntime, get_runtime
from zapbot.services.command_service import CommandInterpreter
from zapbot.services.conversation_store import ConversationStore
from zapbot.services.inbound_service import InboundRouter
from zapbot.services.llm.base import AIBackend, BackendReply, VoiceSession
from zapbot.services.media_service import MediaCache
from zapbot.services.response_service import ResponseGenerator
from zapbot.services.voice_session_service import VoiceSessionManager
from zapbot.services.whatsapp_service import WhatsAppGateway

DEFAULT_PROMPT = "Você é um assistente de testes."
CHAT_ID = "5511999990000@c.us"


@pytest.fixture
def store():
    return ConversationStore(default_system_prompt=DEFAULT_PROMPT)


@pytest.fixture
def backend():
    """AI backend double: text generation plus voice sessions that always succeed."""
    backend = Mock(spec=AIBackend)
    backend.generate_text = AsyncMock(return_value="Resposta do bot")
    backend.open_voice_session = AsyncMock(
        side_effect=lambda prompt, voice: VoiceSession(system_prompt=prompt, voice_identity=voice)
    )
    backend.exchange = AsyncMock(
        return_value=BackendReply(text="Resposta falada", audio=b"RIFFfake", mime_type="audio/wav")
    )
    backend.close_session = AsyncMock()
    return backend


@pytest.fixture
def transport():
    transport = Mock(spec=WhatsAppGateway)
    transport.send_text = AsyncMock(return_value=True)
    transport.send_audio = AsyncMock(return_value=True)
    transport.download_audio = AsyncMock(return_value=b"OggSfake")
    return transport


@pytest.fixture
def sessions(store, backend):
    sessions = VoiceSessionManager(backend)
    store.subscribe(sessions.on_config_change)
    return sessions


@pytest.fixture
def interpreter(store, sessions):
    return CommandInterpreter(store, sessions, max_prompt_length=1000)


@pytest.fixture
def generator(store, backend, transport, sessions):
    return ResponseGenerator(store, backend, transport, sessions, context_window=50)


@pytest.fixture
def router(store, interpreter, generator, transport):
    return InboundRouter(store, interpreter, generator, transport)


@pytest.fixture
def media():
    return MediaCache(secret="test-secret", public_base_url="https://bot.example.com")


@pytest.fixture
def runtime(store, backend, sessions, media, transport, interpreter, generator, router):
    return BotRuntime(
        settings=Settings(gemini_api_key="test-key"),
        store=store,
        backend=backend,
        sessions=sessions,
        media=media,
        transport=transport,
        commands=interpreter,
        generator=generator,
        router=router,
    )


@pytest.fixture
def client(runtime):
    app.dependency_overrides[get_runtime] = lambda: runtime
    yield TestClient(app)
    app.dependency_overrides.clear()
