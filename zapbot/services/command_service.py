"""Administrative chat commands: /bot, /voz, /prompt.

Commands are matched on the first whitespace-separated token only, so
"/botter" is an ordinary message while "/voz xylophone" is a (bad) voice command.
"""

from dataclasses import dataclass
from typing import Optional

from zapbot.models import AVAILABLE_VOICES, ConversationState, Speaker, VoiceIdentity, VoiceState
from zapbot.services import transcript_service
from zapbot.services.conversation_store import ConversationStore
from zapbot.services.voice_session_service import VoiceSessionManager

CMD_BOT = "/bot"
CMD_VOICE = "/voz"
CMD_PROMPT = "/prompt"

SUB_STATUS = "status"
SUB_SHOW = "show"
SUB_RESET = "reset"

MSG_BOT_ON = "🤖 Bot ativado! A partir de agora vou responder às suas mensagens."
MSG_BOT_OFF = "😴 Bot desativado. Envie /bot para ativar novamente."
MSG_BOT_USAGE = "Comandos disponíveis:\n/bot - ativa/desativa o bot\n/bot status - mostra o status atual"
MSG_PROMPT_EMPTY = "❌ O prompt não pode ficar vazio. Use: /prompt <texto>"
MSG_PROMPT_TOO_LONG = "❌ Prompt muito longo ({length} caracteres). O limite é de {limit} caracteres."
MSG_PROMPT_SHOW = "📝 Prompt atual:\n\n{prompt}"
MSG_PROMPT_UPDATED = "✅ Prompt atualizado!\n\n📜 Anterior:\n{old}\n\n🆕 Novo:\n{new}"
MSG_PROMPT_RESET = "🔄 Prompt restaurado para o padrão!\n\n📜 Anterior:\n{old}\n\n🆕 Atual:\n{new}"
MSG_VOICE_ON = "🔊 Respostas em voz ativadas (voz: {voice})."
MSG_VOICE_OFF = "🔇 Respostas em voz desativadas."
MSG_VOICE_SET = "🎙️ Voz alterada de {old} para {new}. Respostas em voz ativadas."
MSG_VOICE_RESET = "🔄 Configuração de voz restaurada (voz: {voice}, respostas em voz desativadas)."
MSG_VOICE_SHOW = "🎙️ Configuração de voz\nVoz: {voice}\nRespostas em voz: {enabled}\nVoz automática: {auto}"
MSG_VOICE_USAGE = (
    "Uso do comando /voz:\n"
    "/voz - ativa/desativa respostas em voz\n"
    "/voz show - mostra a configuração atual\n"
    "/voz reset - restaura o padrão\n"
    "/voz <nome> - escolhe a voz\n\n"
    "Vozes disponíveis: {voices}"
)

SYSTEM_TURN_PROMPT_SET = "Prompt do sistema alterado para: {prompt}"
SYSTEM_TURN_PROMPT_RESET = "Prompt do sistema restaurado para o padrão."


def _yes_no(value: bool) -> str:
    return "sim" if value else "não"


@dataclass(frozen=True)
class CommandOutcome:
    handled: bool
    reply: Optional[str] = None
    action: Optional[str] = None

    @staticmethod
    def no_match() -> "CommandOutcome":
        return CommandOutcome(handled=False)

    @staticmethod
    def handled_with(reply: str, action: str) -> "CommandOutcome":
        return CommandOutcome(handled=True, reply=reply, action=action)


class CommandInterpreter:
    def __init__(
        self,
        store: ConversationStore,
        sessions: Optional[VoiceSessionManager] = None,
        *,
        max_prompt_length: int = 1000,
    ):
        self.store = store
        self.sessions = sessions
        self.max_prompt_length = max_prompt_length

    async def interpret(self, text: str, state: ConversationState, voice: VoiceState) -> CommandOutcome:
        parts = text.strip().split(maxsplit=1)
        if not parts:
            return CommandOutcome.no_match()
        token = parts[0]
        rest = parts[1].strip() if len(parts) > 1 else ""

        if token == CMD_BOT:
            return self._bot(rest, state, voice) if rest else await self._toggle_bot(state)
        if token == CMD_VOICE and self.sessions is not None:
            return await self._voice(rest, state, voice)
        if token == CMD_PROMPT:
            return await self._prompt(rest, state)
        return CommandOutcome.no_match()

    # === /bot ===

    async def _toggle_bot(self, state: ConversationState) -> CommandOutcome:
        active = await self.store.toggle_active(state.conversation_id)
        return CommandOutcome.handled_with(MSG_BOT_ON if active else MSG_BOT_OFF, "bot_toggle")

    def _bot(self, sub: str, state: ConversationState, voice: VoiceState) -> CommandOutcome:
        if sub != SUB_STATUS:
            return CommandOutcome.handled_with(MSG_BOT_USAGE, "bot_usage")

        lines = [
            "📊 Status do bot",
            f"Bot: {'✅ ativo' if state.active else '❌ inativo'}",
            f"Respostas em voz: {'ativadas' if voice.wants_voice else 'desativadas'} ({voice.voice_identity.value})",
        ]
        if self.sessions is not None:
            live = self.sessions.has_session(state.conversation_id)
            lines.append(f"Sessão de voz: {'ativa' if live else 'nenhuma'}")
        custom = state.system_prompt != self.store.default_system_prompt
        lines.append(f"Prompt: {'personalizado' if custom else 'padrão'}")
        lines.append(f"Mensagens no histórico: {len(state.transcript)}")
        return CommandOutcome.handled_with("\n".join(lines), "bot_status")

    # === /voz ===

    async def _voice(self, sub: str, state: ConversationState, voice: VoiceState) -> CommandOutcome:
        conversation_id = state.conversation_id

        if not sub:
            enabled = await self.store.toggle_voice(conversation_id)
            if not enabled:
                return CommandOutcome.handled_with(MSG_VOICE_OFF, "voice_toggle")
            # Explicit enable opens the session up front; failures surface on first use.
            await self.sessions.get_or_create_session(conversation_id, state.system_prompt, voice.voice_identity)
            return CommandOutcome.handled_with(
                MSG_VOICE_ON.format(voice=voice.voice_identity.value), "voice_toggle"
            )

        if sub == SUB_SHOW:
            reply = MSG_VOICE_SHOW.format(
                voice=voice.voice_identity.value,
                enabled=_yes_no(voice.voice_enabled),
                auto=_yes_no(voice.auto_voice),
            )
            return CommandOutcome.handled_with(reply, "voice_show")

        if sub == SUB_RESET:
            await self.store.reset_voice(conversation_id)
            return CommandOutcome.handled_with(
                MSG_VOICE_RESET.format(voice=voice.voice_identity.value), "voice_reset"
            )

        identity = VoiceIdentity.parse(sub)
        if identity is None:
            voices = ", ".join(v.value for v in AVAILABLE_VOICES)
            return CommandOutcome.handled_with(MSG_VOICE_USAGE.format(voices=voices), "voice_usage")

        old_identity = await self.store.set_voice_identity(conversation_id, identity)
        return CommandOutcome.handled_with(
            MSG_VOICE_SET.format(old=old_identity.value, new=identity.value), "voice_set"
        )

    # === /prompt ===

    def validate_prompt(self, prompt: str) -> Optional[str]:
        """Validation message for a candidate prompt, None when it is acceptable."""
        if not prompt:
            return MSG_PROMPT_EMPTY
        if len(prompt) > self.max_prompt_length:
            return MSG_PROMPT_TOO_LONG.format(length=len(prompt), limit=self.max_prompt_length)
        return None

    async def _prompt(self, sub: str, state: ConversationState) -> CommandOutcome:
        conversation_id = state.conversation_id

        if sub == SUB_SHOW:
            return CommandOutcome.handled_with(MSG_PROMPT_SHOW.format(prompt=state.system_prompt), "prompt_show")

        if sub == SUB_RESET:
            old_prompt = await self.store.reset_system_prompt(conversation_id)
            transcript_service.append(state, Speaker.SYSTEM, SYSTEM_TURN_PROMPT_RESET)
            reply = MSG_PROMPT_RESET.format(old=old_prompt, new=state.system_prompt)
            return CommandOutcome.handled_with(reply, "prompt_reset")

        error = self.validate_prompt(sub)
        if error:
            return CommandOutcome.handled_with(error, "prompt_invalid")

        old_prompt = await self.store.set_system_prompt(conversation_id, sub)
        transcript_service.append(state, Speaker.SYSTEM, SYSTEM_TURN_PROMPT_SET.format(prompt=sub))
        return CommandOutcome.handled_with(MSG_PROMPT_UPDATED.format(old=old_prompt, new=sub), "prompt_set")
