"""
Data models for the Code Smell Detector & Refactorer.
"""

from models.data_models import (
    # Enums
    Severity,
    ChatRole,
    SessionPhase,
    # Core Models
    Smell,
    AnalysisResult,
    ChatEntry,
    SessionState,
)

__all__ = [
    # Enums
    "Severity",
    "ChatRole",
    "SessionPhase",
    # Core Models
    "Smell",
    "AnalysisResult",
    "ChatEntry",
    "SessionState",
]
