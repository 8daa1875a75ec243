import base64
from typing import Optional

import httpx

from zapbot.logging_config import get_logger
from zapbot.models import VoiceIdentity
from zapbot.services.llm.base import AIBackend, BackendError, BackendReply, VoiceSession

logger = get_logger("llm.gemini")


class GeminiProvider(AIBackend):
    """Google Gemini REST API provider."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        text_model: str = "gemini-2.0-flash-exp",
        audio_model: str = "gemini-2.0-flash",
        tts_model: str = "gemini-2.5-flash-preview-tts",
        timeout_seconds: float = 60.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.text_model = text_model
        self.audio_model = audio_model
        self.tts_model = tts_model
        self.timeout_seconds = timeout_seconds

    def _headers(self) -> dict:
        return {"x-goog-api-key": self.api_key or "", "Content-Type": "application/json"}

    def _endpoint(self, model: str) -> str:
        return f"{self.base_url}/models/{model}:generateContent"

    async def _post(self, client: httpx.AsyncClient, model: str, payload: dict) -> dict:
        try:
            response = await client.post(self._endpoint(model), headers=self._headers(), json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Gemini request failed: model={model}, error={e}")
            raise BackendError(f"Gemini request failed: {e}") from e

        logger.debug(f"Gemini response status: {response.status_code}")

        if response.status_code != 200:
            logger.error(f"Gemini error: {response.text[:500]}")
            raise BackendError(f"Gemini API error: {response.status_code} - {response.text[:200]}")

        try:
            return response.json()
        except ValueError as e:
            raise BackendError("Gemini returned invalid JSON") from e

    @staticmethod
    def parse_reply(data: dict) -> BackendReply:
        """Collect text and inline audio parts of the first candidate."""
        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback") or {}
            raise BackendError(f"Gemini returned no candidates (blockReason={feedback.get('blockReason')})")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        texts = []
        audio = None
        mime_type = None
        for part in parts:
            if part.get("text"):
                texts.append(part["text"])
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data") and audio is None:
                try:
                    audio = base64.b64decode(inline["data"])
                except (ValueError, TypeError) as e:
                    raise BackendError("Gemini returned undecodable audio") from e
                mime_type = inline.get("mimeType") or inline.get("mime_type")

        text = "".join(texts).strip() or None
        return BackendReply(text=text, audio=audio, mime_type=mime_type)

    async def generate_text(self, prompt: str) -> str:
        """Generate a text reply for a fully built prompt."""
        if not self.api_key:
            raise BackendError("GEMINI_API_KEY is not configured")

        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        logger.debug(f"Gemini request: model={self.text_model}, prompt_chars={len(prompt)}")

        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            data = await self._post(client, self.text_model, payload)

        reply = self.parse_reply(data)
        if not reply.text:
            raise BackendError("Gemini returned an empty text response")
        logger.debug(f"Gemini content: {reply.text[:100]}")
        return reply.text

    async def open_voice_session(self, system_prompt: str, voice_identity: VoiceIdentity) -> VoiceSession:
        """Open a pooled HTTP client bound to one prompt and voice."""
        if not self.api_key:
            raise BackendError("GEMINI_API_KEY is not configured")

        client = httpx.AsyncClient(timeout=self.timeout_seconds)
        logger.info(f"Voice session opened: voice={voice_identity.value}")
        return VoiceSession(system_prompt=system_prompt, voice_identity=voice_identity, transport=client)

    async def close_session(self, session: VoiceSession) -> None:
        client = session.transport
        if isinstance(client, httpx.AsyncClient) and not client.is_closed:
            await client.aclose()

    async def _synthesize(self, session: VoiceSession, text: str) -> BackendReply:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": session.voice_identity.value}}
                },
            },
        }
        data = await self._post(session.transport, self.tts_model, payload)
        reply = self.parse_reply(data)
        if not reply.audio:
            raise BackendError("Gemini TTS returned no audio")
        return BackendReply(text=text, audio=reply.audio, mime_type=reply.mime_type)

    async def _answer_audio(
        self,
        session: VoiceSession,
        audio: bytes,
        mime_type: Optional[str],
        context: Optional[str],
    ) -> str:
        parts = []
        if context:
            parts.append({"text": context})
        parts.append(
            {
                "inlineData": {
                    "mimeType": mime_type or "audio/ogg",
                    "data": base64.b64encode(audio).decode("ascii"),
                }
            }
        )
        payload = {
            "systemInstruction": {"parts": [{"text": session.system_prompt}]},
            "contents": [{"role": "user", "parts": parts}],
        }
        data = await self._post(session.transport, self.audio_model, payload)
        reply = self.parse_reply(data)
        if not reply.text:
            raise BackendError("Gemini returned no answer for the audio message")
        return reply.text

    async def exchange(
        self,
        session: VoiceSession,
        *,
        text: Optional[str] = None,
        audio: Optional[bytes] = None,
        mime_type: Optional[str] = None,
        context: Optional[str] = None,
    ) -> BackendReply:
        if session.transport is None or getattr(session.transport, "is_closed", False):
            raise BackendError("Voice session is closed")

        if audio:
            answer = await self._answer_audio(session, audio, mime_type, context)
            try:
                return await self._synthesize(session, answer)
            except BackendError as e:
                logger.warning(f"Speech synthesis failed, returning text answer only: {e}")
                return BackendReply(text=answer)
        if text:
            return await self._synthesize(session, text)
        raise BackendError("Nothing to send: text or audio is required")
