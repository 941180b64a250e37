"""
Tests for the session state machine.

Feature: code-smell-detector
"""

import re
from datetime import datetime, timezone

import pytest
from hypothesis import given, settings, strategies as st
from pydantic import SecretStr
from structlog.testing import capture_logs

from models.data_models import (
    AnalysisResult,
    ChatRole,
    SessionPhase,
    SessionState,
    Severity,
    Smell,
)
from storage.session_manager import CHAT_LOG_TITLE, TRANSITIONS, SessionManager
from tools.error_handling import ErrorKind, InvalidTransition, SmellDetectorError


def make_result(summary: str = "summary") -> AnalysisResult:
    return AnalysisResult(
        summary=summary,
        smells=(Smell(name="Long Method", severity=Severity.MAJOR),),
        refactored_code="def f():\n    pass",
    )


def ready_session() -> SessionManager:
    manager = SessionManager(SessionState(credential=SecretStr("key")))
    manager.begin_analysis("code", "Python")
    manager.complete_analysis(make_result())
    return manager


class TestInitialState:
    """Test a freshly created session."""

    def test_new_session_is_idle_and_empty(self):
        manager = SessionManager()
        assert manager.phase == SessionPhase.IDLE
        assert manager.analysis_result is None
        assert manager.chat_history == []
        assert manager.current_language == "auto"
        assert manager.credential is None

    def test_sessions_are_independent(self):
        first = ready_session()
        second = SessionManager()
        assert first.phase == SessionPhase.READY
        assert second.phase == SessionPhase.IDLE


class TestAnalysisTransitions:
    """Test Idle/Ready -> Analyzing -> Ready/Idle."""

    def test_submitted_code_committed_with_result(self):
        manager = SessionManager()
        manager.begin_analysis("x = 1", "Python")
        assert manager.phase == SessionPhase.ANALYZING
        assert manager.current_code == ""

        manager.complete_analysis(make_result())
        assert manager.current_code == "x = 1"
        assert manager.current_language == "Python"

    def test_success_sets_result_and_ready(self):
        manager = SessionManager()
        manager.begin_analysis("x = 1", "auto")
        result = make_result()
        manager.complete_analysis(result)
        assert manager.phase == SessionPhase.READY
        assert manager.analysis_result is result

    def test_first_failure_returns_to_idle(self):
        manager = SessionManager()
        manager.begin_analysis("x = 1", "auto")
        manager.fail_analysis()
        assert manager.phase == SessionPhase.IDLE
        assert manager.analysis_result is None

    def test_failure_after_success_keeps_previous_result(self):
        manager = ready_session()
        previous = manager.analysis_result
        manager.begin_analysis("y = 2", "auto")
        manager.fail_analysis()
        assert manager.phase == SessionPhase.READY
        assert manager.analysis_result is previous
        assert manager.current_code == "code"
        assert manager.current_language == "Python"

    def test_new_analysis_replaces_result_wholesale(self):
        manager = ready_session()
        manager.begin_analysis("y = 2", "auto")
        replacement = make_result("second")
        manager.complete_analysis(replacement)
        assert manager.analysis_result is replacement
        assert manager.current_code == "y = 2"

    @pytest.mark.parametrize("busy_phase", [SessionPhase.ANALYZING, SessionPhase.SENDING])
    def test_analysis_rejected_while_busy(self, busy_phase):
        manager = ready_session()
        manager.state.phase = busy_phase
        previous = manager.analysis_result

        with pytest.raises(SmellDetectorError) as exc_info:
            manager.begin_analysis("other", "auto")

        assert exc_info.value.kind == ErrorKind.BUSY
        assert manager.phase == busy_phase
        assert manager.current_code == "code"
        assert manager.analysis_result is previous


class TestFollowUpTransitions:
    """Test Ready -> Sending -> Ready."""

    def test_follow_up_without_analysis_is_rejected(self):
        manager = SessionManager()

        with pytest.raises(SmellDetectorError) as exc_info:
            manager.begin_follow_up("why?")

        assert exc_info.value.kind == ErrorKind.NO_ANALYSIS_YET
        assert manager.chat_history == []
        assert manager.phase == SessionPhase.IDLE

    def test_follow_up_while_sending_is_busy(self):
        manager = ready_session()
        manager.begin_follow_up("first")

        with pytest.raises(SmellDetectorError) as exc_info:
            manager.begin_follow_up("second")

        assert exc_info.value.kind == ErrorKind.BUSY
        assert [e.text for e in manager.chat_history] == ["first"]

    def test_successful_round_appends_user_then_assistant(self):
        manager = ready_session()
        manager.begin_follow_up("why?")
        assert manager.phase == SessionPhase.SENDING
        manager.record_reply("because")

        history = manager.chat_history
        assert manager.phase == SessionPhase.READY
        assert [(e.role, e.text) for e in history] == [
            (ChatRole.USER, "why?"),
            (ChatRole.ASSISTANT, "because"),
        ]
        assert history[0].timestamp <= history[1].timestamp

    def test_failed_round_keeps_user_entry_only(self):
        manager = ready_session()
        manager.begin_follow_up("why?")
        manager.fail_follow_up()

        assert manager.phase == SessionPhase.READY
        assert [(e.role, e.text) for e in manager.chat_history] == [(ChatRole.USER, "why?")]

    def test_chat_history_is_a_copy(self):
        manager = ready_session()
        manager.begin_follow_up("why?")
        manager.chat_history.clear()
        assert len(manager.chat_history) == 1


class TestInvalidTransitions:
    """Test events the current phase does not accept."""

    def test_complete_without_begin(self):
        with pytest.raises(InvalidTransition):
            SessionManager().complete_analysis(make_result())

    def test_reply_without_send(self):
        with pytest.raises(InvalidTransition):
            ready_session().record_reply("orphan")

    def test_transition_table_never_targets_busy_from_busy(self):
        for (source, _event), target in TRANSITIONS.items():
            if source in (SessionPhase.ANALYZING, SessionPhase.SENDING):
                assert target in (None, SessionPhase.READY)


class TestReset:
    """Test reset from every phase."""

    @pytest.mark.parametrize("phase", list(SessionPhase))
    def test_reset_from_any_phase(self, phase):
        manager = ready_session()
        manager.begin_follow_up("why?")
        manager.state.phase = phase

        manager.reset()

        assert manager.phase == SessionPhase.IDLE
        assert manager.analysis_result is None
        assert manager.chat_history == []
        assert manager.current_code == ""
        assert manager.current_language == "auto"
        assert manager.credential.get_secret_value() == "key"


# Property: any sequence of operations leaves the session consistent

OPERATIONS = ["analyze", "analysis_ok", "analysis_fail", "send", "reply", "send_fail", "reset"]


@settings(max_examples=200)
@given(st.lists(st.sampled_from(OPERATIONS), max_size=25))
def test_property_history_is_append_only_and_phase_consistent(operations):
    """
    For any sequence of operations, the history only grows between resets,
    a result exists whenever the session is Ready, and the credential survives.
    """
    manager = SessionManager(SessionState(credential=SecretStr("key")))
    actions = {
        "analyze": lambda: manager.begin_analysis("code", "auto"),
        "analysis_ok": lambda: manager.complete_analysis(make_result()),
        "analysis_fail": manager.fail_analysis,
        "send": lambda: manager.begin_follow_up("q"),
        "reply": lambda: manager.record_reply("a"),
        "send_fail": manager.fail_follow_up,
        "reset": manager.reset,
    }

    for operation in operations:
        before = manager.chat_history
        try:
            actions[operation]()
        except (SmellDetectorError, InvalidTransition):
            assert manager.chat_history == before
            continue

        after = manager.chat_history
        if operation == "reset":
            assert after == []
        else:
            assert after[:len(before)] == before
            assert len(after) - len(before) in (0, 1)

        if manager.phase in (SessionPhase.READY, SessionPhase.SENDING):
            assert manager.analysis_result is not None
        assert manager.credential.get_secret_value() == "key"


class TestChatLog:
    """Test plain-text export of the conversation."""

    def test_empty_history_exports_nothing(self):
        assert ready_session().chat_log() == ""

    def test_chat_log_format(self):
        manager = ready_session()
        manager.begin_follow_up("why?")
        manager.record_reply("Because it is long.")

        exported_at = datetime(2026, 10, 18, 9, 30, 0, tzinfo=timezone.utc)
        log = manager.chat_log(exported_at=exported_at)
        lines = log.split("\n")

        assert lines[0] == CHAT_LOG_TITLE
        assert lines[1] == "=" * 50
        assert lines[2] == "Exported: 2026-10-18 09:30:00"
        assert lines[3] == ""
        assert re.fullmatch(r"\[\d{2}:\d{2}:\d{2}\] You:", lines[4])
        assert lines[5] == "why?"
        assert lines[6] == ""
        assert re.fullmatch(r"\[\d{2}:\d{2}:\d{2}\] Assistant:", lines[7])
        assert lines[8] == "Because it is long."


class TestTransitionLogging:
    """Test that every transition is logged."""

    def test_analysis_and_reset_are_logged(self):
        manager = SessionManager()

        with capture_logs() as logs:
            manager.begin_analysis("x = 1", "auto")
            manager.complete_analysis(make_result())
            manager.reset()

        transitions = [
            (e["transition"], e["from_phase"], e["to_phase"])
            for e in logs if e["event"] == "session_transition"
        ]
        assert transitions == [
            ("analyze", "idle", "analyzing"),
            ("analysis_succeeded", "analyzing", "ready"),
            ("reset", "ready", "idle"),
        ]
