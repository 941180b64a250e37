"""
Completion client for the code smell analysis endpoint.

Sends one prompt per call to a Gemini-style ``generateContent`` endpoint and
returns the generated text. The client:
- attaches the credential as a request header, never in the URL
- enforces a hard deadline measured from the start of the request, even
  against a server that keeps the connection alive by trickling bytes
- classifies every transport and HTTP failure into an ErrorKind
- never retries
"""

import json
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import structlog

from tools.error_handling import ErrorKind, SmellDetectorError, classify_status
from tools.observability import redact_credential, trace_operation

logger = structlog.get_logger(__name__)

DEFAULT_ENDPOINT = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "gemini-2.5-flash-lite:generateContent"
)

REQUEST_TIMEOUT_SECONDS = 30.0

CREDENTIAL_HEADER = "x-goog-api-key"


class CompletionClient:
    """Client for the completion endpoint."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the completion client.

        Args:
            endpoint: Completion endpoint URL
            timeout: Hard deadline for one request, in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
            clock: Monotonic clock used to enforce the deadline
        """
        self.endpoint = endpoint or DEFAULT_ENDPOINT
        self.timeout = timeout
        self._clock = clock
        self.client = httpx.Client(
            transport=transport,
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout),
        )

    def __enter__(self) -> "CompletionClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Release the underlying connection pool."""
        self.client.close()

    def complete(self, prompt_text: str, credential: str, expect_json: bool = False) -> str:
        """
        Send one prompt and return the generated text.

        Args:
            prompt_text: Fully formed prompt
            credential: Endpoint credential (sent as a header)
            expect_json: Ask the endpoint to constrain output to a JSON object

        Returns:
            The text payload of the response, verbatim

        Raises:
            SmellDetectorError: NetworkError, Timeout, BadCredential,
                Unauthorized, RateLimited, EndpointError or MalformedEnvelope
        """
        body = self._build_body(prompt_text, expect_json)
        started = self._clock()
        deadline = started + self.timeout

        logger.info(
            "completion_request_started",
            expect_json=expect_json,
            prompt_chars=len(prompt_text),
            credential=redact_credential(credential),
        )

        with trace_operation(
            "completion.request",
            {"expect_json": expect_json, "prompt_chars": len(prompt_text)}
        ) as span:
            try:
                status_code, content = self._send(body, credential, deadline)
                span.set_attribute("http.status_code", status_code)

                error = classify_status(status_code)
                if error is not None:
                    raise error

                text = self._extract_text(content)
            except SmellDetectorError as e:
                span.set_attribute("error.kind", e.kind.value)
                logger.warning(
                    "completion_request_failed",
                    error_kind=e.kind.value,
                    status_code=e.status_code,
                    detail=e.detail,
                    duration_ms=round((self._clock() - started) * 1000, 1),
                )
                raise

        logger.info(
            "completion_request_finished",
            status_code=status_code,
            response_chars=len(text),
            duration_ms=round((self._clock() - started) * 1000, 1),
        )
        return text

    def _build_body(self, prompt_text: str, expect_json: bool) -> Dict[str, Any]:
        """Build the request body for the endpoint."""
        body: Dict[str, Any] = {
            "contents": [{"parts": [{"text": prompt_text}]}],
        }
        if expect_json:
            body["generationConfig"] = {"response_mime_type": "application/json"}
        return body

    def _send(
        self,
        body: Dict[str, Any],
        credential: str,
        deadline: float
    ) -> Tuple[int, bytes]:
        """
        Run the exchange on a worker thread and wait at most ``timeout`` seconds.

        httpx only bounds each connect, read and write separately, so the
        wall-clock limit is enforced by the join. A worker still stuck after
        the deadline is abandoned; it stops at its next deadline check or
        when its per-read timeout fires.

        Returns:
            Tuple of (status_code, raw body)
        """
        request = self.client.build_request(
            "POST",
            self.endpoint,
            json=body,
            headers={CREDENTIAL_HEADER: credential},
        )
        outcome: Dict[str, Any] = {}

        def run() -> None:
            try:
                outcome["value"] = self._exchange(request, deadline)
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=run, name="completion-request", daemon=True)
        worker.start()
        worker.join(self.timeout)

        if worker.is_alive():
            raise SmellDetectorError(ErrorKind.TIMEOUT, detail="deadline exceeded")
        if "error" in outcome:
            raise outcome["error"]
        return outcome["value"]

    def _exchange(self, request: httpx.Request, deadline: float) -> Tuple[int, bytes]:
        """Send the request and read the whole body, checking the deadline between chunks."""
        try:
            response = self.client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise SmellDetectorError(ErrorKind.TIMEOUT, detail=type(e).__name__) from e
        except httpx.RequestError as e:
            raise SmellDetectorError(ErrorKind.NETWORK_ERROR, detail=type(e).__name__) from e

        try:
            self._check_deadline(deadline)
            if not response.is_success:
                return response.status_code, b""

            chunks: List[bytes] = []
            for chunk in response.iter_bytes():
                self._check_deadline(deadline)
                chunks.append(chunk)
            self._check_deadline(deadline)
            return response.status_code, b"".join(chunks)
        except httpx.TimeoutException as e:
            raise SmellDetectorError(ErrorKind.TIMEOUT, detail=type(e).__name__) from e
        except httpx.RequestError as e:
            raise SmellDetectorError(ErrorKind.NETWORK_ERROR, detail=type(e).__name__) from e
        finally:
            response.close()

    def _check_deadline(self, deadline: float) -> None:
        if self._clock() > deadline:
            raise SmellDetectorError(ErrorKind.TIMEOUT, detail="deadline exceeded")

    @staticmethod
    def _extract_text(content: bytes) -> str:
        """
        Pull ``candidates[0].content.parts[0].text`` out of the envelope.

        Raises:
            SmellDetectorError: MalformedEnvelope if the envelope is not JSON
                or the text field is absent or blank
        """
        try:
            envelope = json.loads(content)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SmellDetectorError(
                ErrorKind.MALFORMED_ENVELOPE,
                detail=f"envelope is not JSON: {type(e).__name__}"
            ) from e

        text = None
        try:
            text = envelope["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            pass

        if not isinstance(text, str) or not text.strip():
            raise SmellDetectorError(
                ErrorKind.MALFORMED_ENVELOPE,
                detail="no text in candidates[0].content.parts[0]"
            )
        return text
