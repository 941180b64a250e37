"""
Core data models for the Code Smell Detector & Refactorer.

This module defines the Pydantic models shared by the prompt builder, the
response normalizer, the session state machine and the coordinator:

- Severity, Smell and AnalysisResult describe one analysis report
- ChatRole and ChatEntry describe the follow-up conversation
- SessionPhase and SessionState describe the single mutable session record
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class Severity(str, Enum):
    """Smell severity levels."""
    CRITICAL = "Critical"
    MAJOR = "Major"
    MINOR = "Minor"


class ChatRole(str, Enum):
    """Author of a chat entry."""
    USER = "user"
    ASSISTANT = "assistant"


class SessionPhase(str, Enum):
    """Phases of the session state machine."""
    IDLE = "idle"
    ANALYZING = "analyzing"
    READY = "ready"
    SENDING = "sending"


class Smell(BaseModel):
    """One reported code-quality issue."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="Unknown Smell", description="Smell name")
    severity: Severity = Field(default=Severity.MINOR, description="Smell severity")
    location: str = Field(default="", description="Function name, line range or description")
    explanation: str = Field(default="", description="Why this is a problem")


class AnalysisResult(BaseModel):
    """
    Normalized analysis report.

    Instances are immutable: a new analysis replaces the previous result
    wholesale instead of patching it.
    """

    model_config = ConfigDict(frozen=True)

    summary: str = Field(default="", description="Overall assessment")
    smells: Tuple[Smell, ...] = Field(
        default_factory=tuple,
        description="Smells in the order the model reported them"
    )
    refactored_code: str = Field(
        ...,
        description="Complete refactored source, or the submitted code if the model gave none"
    )

    def severity_counts(self) -> dict:
        """Count smells per severity, including severities with no smells."""
        counts = {severity.value: 0 for severity in Severity}
        for smell in self.smells:
            counts[smell.severity.value] += 1
        return counts


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatEntry(BaseModel):
    """One message of the follow-up conversation."""

    model_config = ConfigDict(frozen=True)

    role: ChatRole = Field(..., description="Message author")
    text: str = Field(..., description="Message text")
    timestamp: datetime = Field(default_factory=_utcnow, description="When the entry was recorded")


class SessionState(BaseModel):
    """
    The single mutable session record.

    The credential is set once at boot and survives every reset; every other
    field is replaced when the session is reset.
    """

    model_config = ConfigDict(validate_assignment=True)

    credential: Optional[SecretStr] = Field(
        default=None,
        description="Opaque completion-endpoint credential"
    )
    current_code: str = Field(default="", description="Code submitted for analysis")
    current_language: str = Field(default="auto", description="Language identifier or 'auto'")
    analysis_result: Optional[AnalysisResult] = Field(
        default=None,
        description="Result of the last successful analysis"
    )
    chat_history: List[ChatEntry] = Field(
        default_factory=list,
        description="Append-only follow-up conversation"
    )
    phase: SessionPhase = Field(default=SessionPhase.IDLE, description="Current state machine phase")
