from zapbot.services.llm.base import AIBackend, BackendError, BackendReply, ReplyKind, VoiceSession
from zapbot.services.llm.gemini_provider import GeminiProvider

__all__ = ["AIBackend", "BackendError", "BackendReply", "ReplyKind", "VoiceSession", "GeminiProvider"]
