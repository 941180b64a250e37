"""
Normalization of untrusted model output into an AnalysisResult.

The completion text is free-form and may ignore every instruction in the
prompt. ``normalize_analysis`` is total up to the JSON boundary: text that
decodes to a JSON object always yields a usable AnalysisResult, repairing
missing or mistyped fields; anything else fails with ParseError.
"""

import json
import re
from typing import Any, Dict, List, Optional

import structlog

from models.data_models import AnalysisResult, Severity, Smell
from tools.error_handling import ErrorKind, SmellDetectorError

logger = structlog.get_logger(__name__)

UNKNOWN_SMELL_NAME = "Unknown Smell"

_LEADING_FENCE = re.compile(r"^\s*```(?:json)?\s*", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\s*```\s*$")

_SEVERITY_LOOKUP = {severity.value.lower(): severity for severity in Severity}


def strip_fences(raw_text: str) -> str:
    """Remove one leading ```/```json marker and one trailing ``` marker."""
    cleaned = _LEADING_FENCE.sub("", raw_text, count=1)
    cleaned = _TRAILING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def _decode_object(text: str) -> Optional[Dict[str, Any]]:
    """Decode text as a single JSON object, or None if it is not one."""
    try:
        decoded = json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return None
    return decoded if isinstance(decoded, dict) else None


def normalize_severity(value: Any) -> Severity:
    """Map any value onto a Severity; unrecognized values become Minor."""
    if isinstance(value, str):
        return _SEVERITY_LOOKUP.get(value.strip().lower(), Severity.MINOR)
    return Severity.MINOR


def _text_or(value: Any, default: str) -> str:
    return value if isinstance(value, str) else default


def normalize_smell(raw: Dict[str, Any]) -> Smell:
    """Repair one smell object field by field."""
    name = raw.get("name")
    return Smell(
        name=name if isinstance(name, str) and name.strip() else UNKNOWN_SMELL_NAME,
        severity=normalize_severity(raw.get("severity")),
        location=_text_or(raw.get("location"), ""),
        explanation=_text_or(raw.get("explanation"), ""),
    )


def normalize_smells(raw: Any) -> List[Smell]:
    """Repair a smells array, dropping elements that are not objects."""
    if not isinstance(raw, list):
        return []
    return [normalize_smell(item) for item in raw if isinstance(item, dict)]


def normalize_analysis(raw_text: str, fallback_code: str) -> AnalysisResult:
    """
    Parse and repair the completion text of an analysis request.

    Args:
        raw_text: Text returned by the completion endpoint
        fallback_code: The code originally submitted, used when the model
            omits the refactored version

    Returns:
        AnalysisResult satisfying every shape invariant

    Raises:
        SmellDetectorError: ParseError if the text is not a JSON object
    """
    payload = _decode_object(strip_fences(raw_text))
    if payload is None:
        logger.warning("analysis_parse_failed", response_chars=len(raw_text))
        raise SmellDetectorError(ErrorKind.PARSE_ERROR, detail="completion text is not a JSON object")

    raw_smells = payload.get("smells")
    smells = normalize_smells(raw_smells)

    refactored = payload.get("refactored_code")
    used_fallback = not isinstance(refactored, str) or not refactored.strip()
    if used_fallback:
        refactored = fallback_code

    summary = _text_or(payload.get("summary"), "")

    dropped = len(raw_smells) - len(smells) if isinstance(raw_smells, list) else 0
    logger.info(
        "analysis_normalized",
        smell_count=len(smells),
        dropped_smells=dropped,
        used_fallback_code=used_fallback,
    )

    return AnalysisResult(summary=summary, smells=tuple(smells), refactored_code=refactored)
