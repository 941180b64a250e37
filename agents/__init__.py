"""
Agents for the code smell detector.

This package contains:
- CoordinatorAgent: Sequences prompt building, completion, normalization
  and session transitions
"""

from agents.coordinator_agent import CoordinatorAgent

__version__ = "0.1.0"

__all__ = [
    "CoordinatorAgent",
]
