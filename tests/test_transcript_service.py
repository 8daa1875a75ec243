from zapbot.models import ConversationState, Speaker
from zapbot.services import transcript_service


def _state_with_turns(count):
    state = ConversationState(conversation_id="5511@c.us", system_prompt="Prompt")
    for i in range(1, count + 1):
        speaker = Speaker.USER if i % 2 else Speaker.BOT
        transcript_service.append(state, speaker, f"turn {i}")
    return state


class TestAppend:
    def test_append_keeps_order(self):
        state = _state_with_turns(3)

        assert [turn.text for turn in state.transcript] == ["turn 1", "turn 2", "turn 3"]
        assert state.transcript[0].speaker == Speaker.USER
        assert state.transcript[1].speaker == Speaker.BOT

    def test_append_sets_timestamp(self):
        state = ConversationState(conversation_id="5511@c.us", system_prompt="Prompt")
        turn = transcript_service.append(state, Speaker.SYSTEM, "Prompt alterado")

        assert turn.timestamp is not None
        assert state.transcript == [turn]


class TestWindowed:
    def test_window_returns_most_recent_turns(self):
        state = _state_with_turns(60)

        window = transcript_service.windowed(state, 50)

        assert len(window) == 50
        assert window[0].text == "turn 11"
        assert window[-1].text == "turn 60"
        assert len(state.transcript) == 60

    def test_window_larger_than_history(self):
        state = _state_with_turns(3)

        assert len(transcript_service.windowed(state, 20)) == 3

    def test_zero_window_is_empty(self):
        state = _state_with_turns(3)

        assert transcript_service.windowed(state, 0) == []

    def test_window_is_a_copy(self):
        state = _state_with_turns(3)

        window = transcript_service.windowed(state, 2)
        window.clear()

        assert len(state.transcript) == 3


class TestBuildPrompt:
    def test_prompt_without_history(self):
        prompt = transcript_service.build_prompt("Seja gentil.", [], "Oi")

        assert prompt == "Seja gentil.\n\nNova mensagem: Oi"

    def test_prompt_with_history(self):
        state = _state_with_turns(2)

        prompt = transcript_service.build_prompt("Seja gentil.", state.transcript, "Tudo bem?")

        assert prompt == (
            "Seja gentil.\n\n"
            "Contexto da conversa anterior:\n"
            "Usuário: turn 1\n"
            "Bot: turn 2\n\n"
            "Nova mensagem: Tudo bem?"
        )

    def test_system_turns_are_labelled(self):
        state = ConversationState(conversation_id="5511@c.us", system_prompt="Prompt")
        transcript_service.append(state, Speaker.SYSTEM, "Prompt restaurado")

        assert transcript_service.render_turns(state.transcript) == "Sistema: Prompt restaurado"
