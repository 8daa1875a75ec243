from zapbot.services.command_service import CommandInterpreter, CommandOutcome
from zapbot.services.conversation_store import ConfigChange, ConversationStore
from zapbot.services.inbound_service import InboundEvent, InboundOutcome, InboundRouter, InboundStatus
from zapbot.services.response_service import AudioReplyPolicy, GenerationOutcome, ResponseGenerator
from zapbot.services.state_machine import (
    InvalidTransitionError,
    VoiceSessionStatus,
    can_transition,
    drop_session,
    fail_session,
    open_session,
    transition,
)
from zapbot.services.voice_session_service import VoiceSessionManager
