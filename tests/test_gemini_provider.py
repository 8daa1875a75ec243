import asyncio
import base64
import json
from unittest.mock import patch

import httpx
import pytest

from zapbot.models import VoiceIdentity
from zapbot.services.llm.base import BackendError, ReplyKind, VoiceSession
from zapbot.services.llm.gemini_provider import GeminiProvider

RealAsyncClient = httpx.AsyncClient


def text_response(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def audio_response(data=b"PCMDATA", mime_type="audio/L16;rate=24000"):
    encoded = base64.b64encode(data).decode("ascii")
    return {"candidates": [{"content": {"parts": [{"inlineData": {"mimeType": mime_type, "data": encoded}}]}}]}


def mock_client(handler):
    return RealAsyncClient(transport=httpx.MockTransport(handler))


class TestParseReply:
    def test_text_parts_are_joined(self):
        data = {"candidates": [{"content": {"parts": [{"text": "Olá, "}, {"text": "tudo bem?"}]}}]}

        reply = GeminiProvider.parse_reply(data)

        assert reply.text == "Olá, tudo bem?"
        assert reply.kind == ReplyKind.TEXT

    def test_inline_audio(self):
        reply = GeminiProvider.parse_reply(audio_response())

        assert reply.audio == b"PCMDATA"
        assert reply.mime_type == "audio/L16;rate=24000"
        assert reply.kind == ReplyKind.AUDIO

    def test_no_candidates(self):
        with pytest.raises(BackendError, match="SAFETY"):
            GeminiProvider.parse_reply({"promptFeedback": {"blockReason": "SAFETY"}})

    def test_empty_parts(self):
        reply = GeminiProvider.parse_reply({"candidates": [{"content": {"parts": []}}]})

        assert reply.kind == ReplyKind.EMPTY


class TestGenerateText:
    def test_requires_api_key(self):
        provider = GeminiProvider(None)

        with pytest.raises(BackendError):
            asyncio.run(provider.generate_text("Oi"))

    def test_posts_prompt_and_returns_text(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["key"] = request.headers["x-goog-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=text_response("Oi! Como posso ajudar?"))

        provider = GeminiProvider("secret", text_model="gemini-test")
        with patch(
            "zapbot.services.llm.gemini_provider.httpx.AsyncClient",
            side_effect=lambda **kwargs: mock_client(handler),
        ):
            text = asyncio.run(provider.generate_text("Nova mensagem: Oi"))

        assert text == "Oi! Como posso ajudar?"
        assert seen["url"].endswith("/models/gemini-test:generateContent")
        assert seen["key"] == "secret"
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "Nova mensagem: Oi"

    def test_http_error_status(self):
        provider = GeminiProvider("secret")
        with patch(
            "zapbot.services.llm.gemini_provider.httpx.AsyncClient",
            side_effect=lambda **kwargs: mock_client(lambda request: httpx.Response(429, text="quota")),
        ):
            with pytest.raises(BackendError, match="429"):
                asyncio.run(provider.generate_text("Oi"))

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out")

        provider = GeminiProvider("secret")
        with patch(
            "zapbot.services.llm.gemini_provider.httpx.AsyncClient",
            side_effect=lambda **kwargs: mock_client(handler),
        ):
            with pytest.raises(BackendError):
                asyncio.run(provider.generate_text("Oi"))


class TestVoiceExchange:
    def _session(self, handler):
        return VoiceSession(
            system_prompt="Seja gentil.", voice_identity=VoiceIdentity.PUCK, transport=mock_client(handler)
        )

    def test_text_is_synthesized_with_session_voice(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=audio_response())

        provider = GeminiProvider("secret")
        reply = asyncio.run(provider.exchange(self._session(handler), text="Olá"))

        assert reply.text == "Olá"
        assert reply.audio == b"PCMDATA"
        voice_config = seen[0]["generationConfig"]["speechConfig"]["voiceConfig"]
        assert voice_config["prebuiltVoiceConfig"]["voiceName"] == "Puck"

    def test_audio_is_answered_then_synthesized(self):
        seen = []

        def handler(request):
            body = json.loads(request.content)
            seen.append(body)
            if "generationConfig" in body:
                return httpx.Response(200, json=audio_response())
            return httpx.Response(200, json=text_response("Recebi seu áudio."))

        provider = GeminiProvider("secret")
        reply = asyncio.run(
            provider.exchange(self._session(handler), audio=b"OggS", mime_type="audio/ogg", context="Contexto")
        )

        assert reply.text == "Recebi seu áudio."
        assert reply.kind == ReplyKind.BOTH
        answer_request = seen[0]
        assert answer_request["systemInstruction"]["parts"][0]["text"] == "Seja gentil."
        inline = answer_request["contents"][0]["parts"][1]["inlineData"]
        assert base64.b64decode(inline["data"]) == b"OggS"
        assert inline["mimeType"] == "audio/ogg"

    def test_audio_answer_survives_tts_failure(self):
        def handler(request):
            body = json.loads(request.content)
            if "generationConfig" in body:
                return httpx.Response(500, text="tts unavailable")
            return httpx.Response(200, json=text_response("Resposta ao áudio"))

        provider = GeminiProvider("secret")
        reply = asyncio.run(provider.exchange(self._session(handler), audio=b"OggS", mime_type="audio/ogg"))

        assert reply.text == "Resposta ao áudio"
        assert reply.kind == ReplyKind.TEXT

    def test_tts_without_audio_fails(self):
        provider = GeminiProvider("secret")
        session = self._session(lambda request: httpx.Response(200, json=text_response("sem áudio")))

        with pytest.raises(BackendError):
            asyncio.run(provider.exchange(session, text="Olá"))

    def test_closed_session_fails(self):
        provider = GeminiProvider("secret")
        session = VoiceSession(system_prompt="p", voice_identity=VoiceIdentity.KORE)

        with pytest.raises(BackendError):
            asyncio.run(provider.exchange(session, text="Olá"))

    def test_open_and_close_session(self):
        provider = GeminiProvider("secret")

        async def open_and_close():
            session = await provider.open_voice_session("Prompt", VoiceIdentity.LEDA)
            await provider.close_session(session)
            return session

        session = asyncio.run(open_and_close())

        assert session.voice_identity == VoiceIdentity.LEDA
        assert session.transport.is_closed

    def test_open_session_requires_api_key(self):
        with pytest.raises(BackendError):
            asyncio.run(GeminiProvider(None).open_voice_session("Prompt", VoiceIdentity.KORE))
