from enum import Enum


class VoiceSessionStatus(str, Enum):
    ABSENT = "absent"
    ACTIVE = "active"
    ERROR = "error"


VALID_TRANSITIONS = {
    VoiceSessionStatus.ABSENT: [VoiceSessionStatus.ACTIVE, VoiceSessionStatus.ERROR],
    VoiceSessionStatus.ACTIVE: [VoiceSessionStatus.ABSENT, VoiceSessionStatus.ERROR],
    VoiceSessionStatus.ERROR: [VoiceSessionStatus.ACTIVE, VoiceSessionStatus.ABSENT],
}


class InvalidTransitionError(Exception):
    def __init__(self, from_state: VoiceSessionStatus, to_state: VoiceSessionStatus):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def can_transition(from_state: VoiceSessionStatus, to_state: VoiceSessionStatus) -> bool:
    """Check if transition is valid."""
    allowed = VALID_TRANSITIONS.get(from_state, [])
    return to_state in allowed


def transition(from_state: VoiceSessionStatus, to_state: VoiceSessionStatus) -> VoiceSessionStatus:
    """Perform state transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    return to_state


def open_session(current_state: VoiceSessionStatus) -> VoiceSessionStatus:
    """Backend session opened successfully."""
    return transition(current_state, VoiceSessionStatus.ACTIVE)


def fail_session(current_state: VoiceSessionStatus) -> VoiceSessionStatus:
    """Opening or using the session failed."""
    return transition(current_state, VoiceSessionStatus.ERROR)


def drop_session(current_state: VoiceSessionStatus) -> VoiceSessionStatus:
    """Session discarded (config changed, disconnect, reset). No-op when already absent."""
    if current_state == VoiceSessionStatus.ABSENT:
        return current_state
    return transition(current_state, VoiceSessionStatus.ABSENT)
