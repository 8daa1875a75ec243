from zapbot.models.conversation import ConversationState, Speaker, Turn
from zapbot.models.stats import GlobalStats
from zapbot.models.voice import AVAILABLE_VOICES, DEFAULT_VOICE, VoiceIdentity, VoiceState

__all__ = [
    "ConversationState",
    "Speaker",
    "Turn",
    "VoiceState",
    "VoiceIdentity",
    "AVAILABLE_VOICES",
    "DEFAULT_VOICE",
    "GlobalStats",
]
