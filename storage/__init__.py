"""
Session storage for the Code Smell Detector & Refactorer.

This package contains:
- SessionManager, the in-memory session state machine
"""

from storage.session_manager import SessionManager

__all__ = ["SessionManager"]
