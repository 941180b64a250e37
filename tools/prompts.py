"""
Prompt templates for the completion endpoint.

The model's only behavioural contract comes from this text: the response
normalizer relies on the schema and rules below, so any wording change here is
a breaking change for the normalization guarantees.
"""

import json

from models.data_models import AnalysisResult

ANALYSIS_SCHEMA = """{
  "summary": "<2-3 sentence overall assessment>",
  "smells": [
    {
      "name": "<smell name>",
      "severity": "<Critical | Major | Minor>",
      "location": "<function name, line range, or description>",
      "explanation": "<why this is a problem and its impact>"
    }
  ],
  "refactored_code": "<complete refactored source code as a string>"
}"""

# Selector values that do not name a concrete language
_GENERIC_LANGUAGES = {"", "auto", "other"}


def _is_concrete_language(language: str) -> bool:
    return bool(language) and language not in _GENERIC_LANGUAGES


def build_analysis_prompt(code: str, language: str) -> str:
    """
    Build the code-smell analysis prompt.

    Args:
        code: Source code to analyze
        language: Language identifier (e.g. "Python") or "auto"

    Returns:
        Complete prompt text
    """
    concrete = _is_concrete_language(language)
    # Generic selectors render "the following code". Earlier prompt revisions
    # doubled the phrase as "the following the following code".
    subject = f"{language} code" if concrete else "code"
    lang_fence = language if concrete else ""

    return f"""You are a senior software engineer specialising in code quality.

Analyse the following {subject} for code smells.
Return your response as valid JSON matching this exact schema:

{ANALYSIS_SCHEMA}

Rules:
- If no code smells are found, return an empty smells array.
- severity MUST be exactly one of: Critical, Major, Minor.
- refactored_code must contain the complete, runnable refactored source.
- Do NOT include markdown fences or any text outside the JSON object.

Code to analyse:
```{lang_fence}
{code}
```"""


def build_follow_up_prompt(
    question: str,
    original_code: str,
    analysis_result: AnalysisResult
) -> str:
    """
    Build a follow-up chat prompt carrying the prior analysis as context.

    Args:
        question: The user's follow-up question
        original_code: The code that was analyzed
        analysis_result: The normalized result of that analysis

    Returns:
        Complete prompt text
    """
    serialized = json.dumps(
        analysis_result.model_dump(mode='json'),
        indent=2,
        ensure_ascii=False
    )

    return f"""You previously analysed the following code and produced this result:

{serialized}

Original code:
```
{original_code}
```

The user now asks: {question}

Answer conversationally. You may reference specific smells by name or line number.
Be concise, clear, and helpful. Do not return JSON — respond in plain English."""
