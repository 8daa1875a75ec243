import pytest

from zapbot.services.state_machine import (
    InvalidTransitionError,
    VoiceSessionStatus,
    can_transition,
    drop_session,
    fail_session,
    open_session,
    transition,
)


class TestValidTransitions:
    def test_absent_to_active(self):
        assert transition(VoiceSessionStatus.ABSENT, VoiceSessionStatus.ACTIVE) == VoiceSessionStatus.ACTIVE

    def test_absent_to_error(self):
        assert transition(VoiceSessionStatus.ABSENT, VoiceSessionStatus.ERROR) == VoiceSessionStatus.ERROR

    def test_active_to_error(self):
        assert transition(VoiceSessionStatus.ACTIVE, VoiceSessionStatus.ERROR) == VoiceSessionStatus.ERROR

    def test_error_to_active(self):
        assert transition(VoiceSessionStatus.ERROR, VoiceSessionStatus.ACTIVE) == VoiceSessionStatus.ACTIVE


class TestInvalidTransitions:
    def test_active_to_active(self):
        with pytest.raises(InvalidTransitionError):
            transition(VoiceSessionStatus.ACTIVE, VoiceSessionStatus.ACTIVE)

    def test_error_to_error(self):
        with pytest.raises(InvalidTransitionError):
            transition(VoiceSessionStatus.ERROR, VoiceSessionStatus.ERROR)

    def test_error_message_names_states(self):
        with pytest.raises(InvalidTransitionError, match="active -> active"):
            open_session(VoiceSessionStatus.ACTIVE)


class TestHelperFunctions:
    def test_open_session(self):
        assert open_session(VoiceSessionStatus.ABSENT) == VoiceSessionStatus.ACTIVE

    def test_fail_session(self):
        assert fail_session(VoiceSessionStatus.ACTIVE) == VoiceSessionStatus.ERROR

    def test_drop_active_session(self):
        assert drop_session(VoiceSessionStatus.ACTIVE) == VoiceSessionStatus.ABSENT

    def test_drop_absent_session_is_noop(self):
        assert drop_session(VoiceSessionStatus.ABSENT) == VoiceSessionStatus.ABSENT


class TestCanTransition:
    def test_valid_returns_true(self):
        assert can_transition(VoiceSessionStatus.ERROR, VoiceSessionStatus.ABSENT) is True

    def test_invalid_returns_false(self):
        assert can_transition(VoiceSessionStatus.ABSENT, VoiceSessionStatus.ABSENT) is False
