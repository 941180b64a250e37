"""
Building blocks of the orchestration core.

This package contains:
- Prompt templates for analysis and follow-up requests
- The completion-endpoint client and its error taxonomy
- The response normalizer for untrusted model output
- Observability tools for logging and tracing
"""

from tools.observability import (
    correlation_context,
    setup_logging,
    setup_tracing,
    trace_operation,
)

__all__ = [
    "correlation_context",
    "setup_logging",
    "setup_tracing",
    "trace_operation",
]
