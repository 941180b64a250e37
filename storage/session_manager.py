"""
Session state machine for the analysis and follow-up conversation.

The session record lives only in memory; nothing is persisted across process
restarts. Phases act as the mutual-exclusion mechanism: while a request is in
flight (Analyzing or Sending) every new request is rejected with Busy.

    Idle --analyze--> Analyzing --succeeded--> Ready
    Analyzing --failed--> Ready (or Idle when no result exists yet)
    Ready --send--> Sending --reply/failed--> Ready
    any --reset--> Idle
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple

import structlog
from pydantic import SecretStr

from models.data_models import (
    AnalysisResult,
    ChatEntry,
    ChatRole,
    SessionPhase,
    SessionState,
)
from tools.error_handling import ErrorKind, InvalidTransition, SmellDetectorError

logger = structlog.get_logger(__name__)

# Events driving the state machine
ANALYZE = "analyze"
ANALYSIS_SUCCEEDED = "analysis_succeeded"
ANALYSIS_FAILED = "analysis_failed"
SEND = "send"
REPLY_RECEIVED = "reply_received"
SEND_FAILED = "send_failed"

# A target of None means "the last stable phase": Ready if a result exists, else Idle
TRANSITIONS: Dict[Tuple[SessionPhase, str], Optional[SessionPhase]] = {
    (SessionPhase.IDLE, ANALYZE): SessionPhase.ANALYZING,
    (SessionPhase.READY, ANALYZE): SessionPhase.ANALYZING,
    (SessionPhase.ANALYZING, ANALYSIS_SUCCEEDED): SessionPhase.READY,
    (SessionPhase.ANALYZING, ANALYSIS_FAILED): None,
    (SessionPhase.READY, SEND): SessionPhase.SENDING,
    (SessionPhase.SENDING, REPLY_RECEIVED): SessionPhase.READY,
    (SessionPhase.SENDING, SEND_FAILED): SessionPhase.READY,
}

BUSY_PHASES = frozenset({SessionPhase.ANALYZING, SessionPhase.SENDING})

CHAT_LOG_TITLE = "Code Smells Detector & Refactorer — Chat Export"


class SessionManager:
    """
    Owns the SessionState record and applies state machine transitions.

    Provides:
    - Phase guards for analysis and follow-up requests
    - Commit of analysis results and chat entries
    - Reset that keeps the credential
    - Plain-text chat log export
    """

    def __init__(self, state: Optional[SessionState] = None):
        """
        Initialize the Session Manager.

        Args:
            state: Session record to manage (a fresh Idle record if None)
        """
        self.state = state or SessionState()
        # Submitted code is held here until its analysis succeeds
        self._pending: Optional[Tuple[str, str]] = None

    # Read access

    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    @property
    def credential(self) -> Optional[SecretStr]:
        return self.state.credential

    @property
    def analysis_result(self) -> Optional[AnalysisResult]:
        return self.state.analysis_result

    @property
    def current_code(self) -> str:
        return self.state.current_code

    @property
    def current_language(self) -> str:
        return self.state.current_language

    @property
    def chat_history(self) -> List[ChatEntry]:
        """Copy of the chat history; mutating it never affects the session."""
        return list(self.state.chat_history)

    def is_busy(self) -> bool:
        """Check whether a request is in flight."""
        return self.state.phase in BUSY_PHASES

    def has_analysis(self) -> bool:
        return self.state.analysis_result is not None

    # Guards

    def check_can_analyze(self) -> None:
        """
        Raises:
            SmellDetectorError: Busy if a request is in flight
        """
        if self.is_busy():
            raise SmellDetectorError(ErrorKind.BUSY, detail=f"phase={self.state.phase.value}")

    def check_can_send(self) -> None:
        """
        Raises:
            SmellDetectorError: Busy if a request is in flight, NoAnalysisYet
                if no analysis result exists
        """
        if self.is_busy():
            raise SmellDetectorError(ErrorKind.BUSY, detail=f"phase={self.state.phase.value}")
        if not self.has_analysis():
            raise SmellDetectorError(ErrorKind.NO_ANALYSIS_YET)

    # Transitions

    def begin_analysis(self, code: str, language: str) -> None:
        """
        Enter Analyzing and hold the submitted code and language.

        The current code only changes together with the analysis result, so
        a failed analysis keeps the previous code next to its result.
        """
        self.check_can_analyze()
        self._transition(ANALYZE)
        self._pending = (code, language)

    def complete_analysis(self, result: AnalysisResult) -> None:
        """Commit a new analysis result together with the code it was produced from."""
        self._transition(ANALYSIS_SUCCEEDED)
        code, language = self._pending or (self.state.current_code, self.state.current_language)
        self._pending = None
        self.state.current_code = code
        self.state.current_language = language
        self.state.analysis_result = result

    def fail_analysis(self) -> None:
        """Leave Analyzing without touching the previous result."""
        self._transition(ANALYSIS_FAILED)
        self._pending = None

    def begin_follow_up(self, question: str) -> ChatEntry:
        """
        Enter Sending and append the user's question to the history.

        The entry is appended before the request so it stays visible even
        if the request fails.

        Returns:
            The appended user entry
        """
        self.check_can_send()
        self._transition(SEND)
        return self._append(ChatRole.USER, question)

    def record_reply(self, reply: str) -> ChatEntry:
        """Append the assistant reply and return to Ready."""
        self._transition(REPLY_RECEIVED)
        return self._append(ChatRole.ASSISTANT, reply)

    def fail_follow_up(self) -> None:
        """Return to Ready, keeping the user's question in the history."""
        self._transition(SEND_FAILED)

    def reset(self) -> None:
        """Return to Idle and clear everything except the credential."""
        previous = self.state.phase
        self.state = SessionState(credential=self.state.credential)
        self._pending = None
        logger.info("session_transition", transition="reset", from_phase=previous.value, to_phase=SessionPhase.IDLE.value)

    def _transition(self, event: str) -> SessionPhase:
        current = self.state.phase
        key = (current, event)
        if key not in TRANSITIONS:
            raise InvalidTransition(current.value, event)

        target = TRANSITIONS[key]
        if target is None:
            target = SessionPhase.READY if self.has_analysis() else SessionPhase.IDLE

        self.state.phase = target
        logger.debug("session_transition", transition=event, from_phase=current.value, to_phase=target.value)
        return target

    def _append(self, role: ChatRole, text: str) -> ChatEntry:
        entry = ChatEntry(role=role, text=text)
        self.state.chat_history.append(entry)
        return entry

    # Export

    def chat_log(self, exported_at: Optional[datetime] = None) -> str:
        """
        Format the chat history as a plain-text log.

        Args:
            exported_at: Export timestamp shown in the header (defaults to now)

        Returns:
            The log text, or an empty string if there are no messages
        """
        if not self.state.chat_history:
            return ""

        exported_at = exported_at or datetime.now().astimezone()
        lines = [
            CHAT_LOG_TITLE,
            "=" * 50,
            f"Exported: {exported_at.strftime('%Y-%m-%d %H:%M:%S')}",
            "",
        ]

        for entry in self.state.chat_history:
            author = "You" if entry.role == ChatRole.USER else "Assistant"
            time_str = entry.timestamp.astimezone().strftime("%H:%M:%S")
            lines.append(f"[{time_str}] {author}:")
            lines.append(entry.text)
            lines.append("")

        return "\n".join(lines)
