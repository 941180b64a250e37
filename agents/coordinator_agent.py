"""
Coordinator Agent for the code smell analysis session.

This agent performs:
- Credential and phase validation before any request is made
- Prompt construction for analysis and follow-up turns
- One completion round trip per call, without retries
- Normalization of the analysis text into an AnalysisResult
- Session state transitions, leaving the session Idle or Ready on any failure
"""

from typing import Optional

import structlog

from config.settings import is_usable_key
from models.data_models import AnalysisResult
from storage.session_manager import SessionManager
from tools.error_handling import ErrorKind, Result, SmellDetectorError
from tools.llm_client import CompletionClient
from tools.normalizer import normalize_analysis
from tools.observability import correlation_context
from tools.prompts import build_analysis_prompt, build_follow_up_prompt

logger = structlog.get_logger(__name__)


class CoordinatorAgent:
    """
    Single entry point of the orchestration core.

    The coordinator is the only writer of the session record it is given;
    its public operations return a Result instead of raising for expected
    failures.
    """

    def __init__(
        self,
        session_manager: SessionManager,
        client: Optional[CompletionClient] = None
    ):
        """
        Initialize the Coordinator Agent.

        Args:
            session_manager: Session to drive (owns the credential)
            client: Completion client (a default client if None)
        """
        self.session = session_manager
        self.client = client or CompletionClient()

    def analyze(self, code: str, language: str = "auto") -> Result[AnalysisResult]:
        """
        Analyze source code for smells and produce a refactored version.

        Args:
            code: Source code to analyze
            language: Language identifier or "auto"

        Returns:
            Result holding the new AnalysisResult, or a MissingCredential,
            Busy, transport/HTTP, MalformedEnvelope or ParseError failure
        """
        with correlation_context():
            credential = self._credential()
            if credential is None:
                return self._reject("analyze", SmellDetectorError(ErrorKind.MISSING_CREDENTIAL))

            try:
                self.session.begin_analysis(code, language)
            except SmellDetectorError as e:
                return self._reject("analyze", e)

            logger.info("analysis_started", language=language, code_chars=len(code))
            try:
                prompt = build_analysis_prompt(code, language)
                raw_text = self.client.complete(prompt, credential, expect_json=True)
                result = normalize_analysis(raw_text, fallback_code=code)
            except SmellDetectorError as e:
                self.session.fail_analysis()
                logger.warning("analysis_failed", error_kind=e.kind.value, phase=self.session.phase.value)
                return Result.failure(e)
            except Exception:
                self.session.fail_analysis()
                raise

            self.session.complete_analysis(result)
            logger.info("analysis_completed", smell_count=len(result.smells))
            return Result.success(result)

    def send_follow_up(self, question: str) -> Result[str]:
        """
        Ask a follow-up question about the current analysis.

        The question is added to the chat history before the request is sent,
        so it stays visible even if the request fails.

        Args:
            question: The user's question

        Returns:
            Result holding the reply text, or a Busy, NoAnalysisYet,
            MissingCredential, transport/HTTP or MalformedEnvelope failure
        """
        with correlation_context():
            try:
                self.session.check_can_send()
            except SmellDetectorError as e:
                return self._reject("send_follow_up", e)

            credential = self._credential()
            if credential is None:
                return self._reject("send_follow_up", SmellDetectorError(ErrorKind.MISSING_CREDENTIAL))

            self.session.begin_follow_up(question)
            logger.info("follow_up_started", question_chars=len(question))
            try:
                prompt = build_follow_up_prompt(
                    question,
                    self.session.current_code,
                    self.session.analysis_result
                )
                reply = self.client.complete(prompt, credential, expect_json=False)
            except SmellDetectorError as e:
                self.session.fail_follow_up()
                logger.warning("follow_up_failed", error_kind=e.kind.value)
                return Result.failure(e)
            except Exception:
                self.session.fail_follow_up()
                raise

            self.session.record_reply(reply)
            logger.info("follow_up_completed", reply_chars=len(reply))
            return Result.success(reply)

    def reset(self) -> None:
        """Clear the session, keeping the credential."""
        self.session.reset()

    def _credential(self) -> Optional[str]:
        """Return the usable credential, or None if it is missing or a placeholder."""
        secret = self.session.credential
        if secret is None:
            return None
        value = secret.get_secret_value()
        return value if is_usable_key(value) else None

    def _reject(self, operation: str, error: SmellDetectorError) -> Result:
        logger.info(
            "request_rejected",
            operation=operation,
            error_kind=error.kind.value,
            phase=self.session.phase.value,
        )
        return Result.failure(error)
