from datetime import datetime, timezone
from typing import Sequence

from zapbot.models import ConversationState, Speaker, Turn

SPEAKER_LABELS = {
    Speaker.USER: "Usuário",
    Speaker.BOT: "Bot",
    Speaker.SYSTEM: "Sistema",
}


def append(state: ConversationState, speaker: Speaker, text: str) -> Turn:
    """Append a turn. History is never trimmed on write."""
    turn = Turn(speaker=speaker, text=text, timestamp=datetime.now(timezone.utc))
    state.transcript.append(turn)
    return turn


def windowed(state: ConversationState, n: int) -> list[Turn]:
    """Last n turns in chronological order, without touching stored history."""
    if n <= 0:
        return []
    return list(state.transcript[-n:])


def render_turns(turns: Sequence[Turn]) -> str:
    return "\n".join(f"{SPEAKER_LABELS[turn.speaker]}: {turn.text}" for turn in turns)


def build_prompt(system_prompt: str, turns: Sequence[Turn], user_text: str) -> str:
    """System prompt, optional previous context, then the new message."""
    sections = [system_prompt.strip()]
    if turns:
        sections.append(f"Contexto da conversa anterior:\n{render_turns(turns)}")
    sections.append(f"Nova mensagem: {user_text}")
    return "\n\n".join(section for section in sections if section)
