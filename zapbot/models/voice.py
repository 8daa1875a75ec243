from dataclasses import dataclass
from enum import Enum
from typing import Optional


class VoiceIdentity(str, Enum):
    """Gemini prebuilt voices."""

    PUCK = "Puck"
    CHARON = "Charon"
    KORE = "Kore"
    FENRIR = "Fenrir"
    AOEDE = "Aoede"
    LEDA = "Leda"
    ORUS = "Orus"
    ZEPHYR = "Zephyr"

    @classmethod
    def parse(cls, name: Optional[str]) -> Optional["VoiceIdentity"]:
        """Case-insensitive lookup, None when the name is not a known voice."""
        if not name:
            return None
        wanted = name.strip().lower()
        for voice in cls:
            if voice.value.lower() == wanted:
                return voice
        return None


AVAILABLE_VOICES = tuple(VoiceIdentity)
DEFAULT_VOICE = VoiceIdentity.KORE


@dataclass
class VoiceState:
    voice_identity: VoiceIdentity = DEFAULT_VOICE
    voice_enabled: bool = False
    # Reply to plain text messages in voice; set together with voice_enabled by /voz
    auto_voice: bool = False

    @property
    def wants_voice(self) -> bool:
        return self.voice_enabled or self.auto_voice
