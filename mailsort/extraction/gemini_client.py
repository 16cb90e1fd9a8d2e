"""
Gemini document-understanding client.

Sends one scan (PDF or image bytes) to Gemini and returns the raw per-letter
records. Transient failures (rate limiting, upstream outages, timeouts) are
retried here with exponential backoff; everything else fails fast. Callers
only ever see ``ExtractionError`` subclasses whose message is fit to show
on a failed work item.
"""

import asyncio
import json
import math
from typing import Any, Awaitable, Callable, Dict, List, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
    wait_random,
)

from mailsort.config import get_settings
from mailsort.extraction.prompts import PROGRESS_PHASES, SYSTEM_INSTRUCTION, build_user_prompt
from mailsort.models import RawRecord
from mailsort.storage.base import SUPPORTED_MIME_TYPES
from mailsort.utils.errors import (
    ExtractionError,
    ExtractionTimeoutError,
    InvalidInputError,
    MissingConfigurationError,
    RateLimitedError,
    ServiceUnavailableError,
    UnauthorizedError,
    UnsupportedMimeTypeError,
)
from mailsort.utils.logging import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[str], None]

RETRYABLE_ERRORS = (RateLimitedError, ServiceUnavailableError, ExtractionTimeoutError)

FILE_ERROR_MESSAGE = (
    "File Error: The AI cannot read this file. It might be corrupted, password-protected, "
    "or zero-bytes. Please convert to a standard PDF or Image."
)
RATE_LIMIT_MESSAGE = (
    "Traffic Jam: The AI service is experiencing high load. We reached the rate limit. "
    "Please wait a moment and retry."
)
OUTAGE_MESSAGE = (
    "Service Outage: Google's AI is temporarily unreachable. Please try again in a few minutes."
)
TIMEOUT_MESSAGE = (
    "Analysis Timeout: The AI took too long to respond. The document might be too complex "
    "or the service is slow."
)
UNAUTHORIZED_MESSAGE = (
    "Access Denied: The AI service rejected the API key. Check GEMINI_API_KEY and retry."
)
EMPTY_RESPONSE_MESSAGE = (
    "Empty Response: The AI processed the file but found no identifiable text. "
    "The scan might be blank or too blurry."
)


def translate_service_error(error: BaseException) -> ExtractionError:
    """Map a Gemini/transport failure onto the extraction error taxonomy."""
    if isinstance(error, ExtractionError):
        return error
    if isinstance(error, (asyncio.TimeoutError, google_exceptions.DeadlineExceeded)):
        return ExtractionTimeoutError(TIMEOUT_MESSAGE)

    code = getattr(error, "code", None)
    status = code if isinstance(code, int) else None
    text = str(error).lower()

    if (
        status == 429
        or isinstance(error, (google_exceptions.ResourceExhausted, google_exceptions.TooManyRequests))
        or "exhausted" in text
        or "too many requests" in text
    ):
        return RateLimitedError(RATE_LIMIT_MESSAGE)
    if status in (401, 403) or isinstance(
        error, (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied)
    ):
        return UnauthorizedError(UNAUTHORIZED_MESSAGE)
    if status == 400 or isinstance(error, google_exceptions.InvalidArgument):
        return InvalidInputError(FILE_ERROR_MESSAGE)
    if (status is not None and status >= 500) or isinstance(error, google_exceptions.ServerError):
        return ServiceUnavailableError(OUTAGE_MESSAGE)
    return ExtractionError(str(error) or "Unknown error")


def parse_response(text: Optional[str]) -> List[RawRecord]:
    """Validate the model's JSON answer into raw records."""
    if not text or not text.strip():
        raise InvalidInputError(EMPTY_RESPONSE_MESSAGE)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidInputError(
            "Unreadable Response: The AI answered with malformed data. Please retry the item.",
            {"error": str(e)},
        )

    if isinstance(payload, dict):
        entries = payload.get("analysis_results") or []
    elif isinstance(payload, list):
        entries = payload
    else:
        entries = []

    records = []
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning(f"Skipping non-object analysis entry: {entry!r}")
            continue
        records.append(RawRecord.model_validate(entry))
    return records


class GeminiExtractionClient:
    """Extract per-letter records from mail scans with Gemini."""

    def __init__(
        self,
        model: Any = None,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        min_delay: Optional[float] = None,
        jitter: Optional[float] = None,
        request_timeout: Optional[float] = None,
        phase_interval: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the client.

        Args:
            model: Object exposing ``generate_content_async`` (built from settings if None)
            api_key: Gemini API key (defaults to GEMINI_API_KEY)
            model_name: Gemini model name
            max_attempts: Total attempts per document, first call included
            base_delay: Backoff base in seconds, doubled on every retry
            min_delay: Constant added to every backoff sleep
            jitter: Upper bound of the random component added to backoff sleeps
            request_timeout: Per-call timeout in seconds
            phase_interval: Seconds between cosmetic progress messages
            sleep: Coroutine used for backoff sleeps
        """
        settings = get_settings()
        self.model_name = model_name or settings.gemini_model
        self.max_attempts = max_attempts or settings.extraction_max_attempts
        self.base_delay = settings.extraction_base_delay if base_delay is None else base_delay
        self.min_delay = settings.extraction_min_delay if min_delay is None else min_delay
        self.jitter = settings.extraction_jitter if jitter is None else jitter
        self.request_timeout = request_timeout or settings.extraction_timeout
        self.phase_interval = phase_interval or settings.progress_phase_interval
        self._sleep = sleep

        self._model = model if model is not None else self._build_model(api_key or settings.gemini_api_key)

    def _build_model(self, api_key: Optional[str]):
        if not api_key:
            raise MissingConfigurationError("GEMINI_API_KEY")
        genai.configure(api_key=api_key)
        logger.info(f"Gemini model configured: {self.model_name}")
        return genai.GenerativeModel(
            self.model_name,
            system_instruction=SYSTEM_INSTRUCTION,
            generation_config={"response_mime_type": "application/json"},
        )

    @staticmethod
    def _emit(on_progress: Optional[ProgressCallback], message: str) -> None:
        if on_progress is not None:
            on_progress(message)

    async def _tick_phases(self, on_progress: ProgressCallback) -> None:
        for phase in PROGRESS_PHASES:
            await asyncio.sleep(self.phase_interval)
            on_progress(phase)

    def _retrying(self, on_progress: Optional[ProgressCallback]) -> AsyncRetrying:
        def before_sleep(retry_state: RetryCallState) -> None:
            wait = retry_state.next_action.sleep if retry_state.next_action else 0
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                f"Attempt {retry_state.attempt_number}/{self.max_attempts} failed "
                f"({type(error).__name__}); retrying in {wait:.1f}s"
            )
            self._emit(on_progress, f"Server busy. Re-attempting in {math.ceil(wait)}s...")

        return AsyncRetrying(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            stop=stop_after_attempt(self.max_attempts),
            wait=(
                wait_exponential(multiplier=self.base_delay, exp_base=2)
                + wait_fixed(self.min_delay)
                + wait_random(0, self.jitter)
            ),
            sleep=self._sleep,
            before_sleep=before_sleep,
            reraise=True,
        )

    async def _generate(
        self,
        content: bytes,
        mime_type: str,
        metadata: Dict[str, Any],
        on_progress: Optional[ProgressCallback],
    ) -> List[RawRecord]:
        ticker = asyncio.create_task(self._tick_phases(on_progress)) if on_progress else None
        try:
            response = await asyncio.wait_for(
                self._model.generate_content_async(
                    [{"mime_type": mime_type, "data": content}, build_user_prompt(metadata)]
                ),
                timeout=self.request_timeout,
            )
        except (google_exceptions.GoogleAPICallError, asyncio.TimeoutError) as e:
            raise translate_service_error(e) from e
        finally:
            if ticker is not None:
                ticker.cancel()

        try:
            text = response.text
        except ValueError:
            # Blocked or empty candidates
            text = None
        return parse_response(text)

    async def analyze(
        self,
        content: bytes,
        mime_type: str,
        metadata: Optional[Dict[str, Any]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[RawRecord]:
        """
        Extract every letter contained in one scan.

        Args:
            content: File bytes
            mime_type: Content type; must be on the allow-list
            metadata: Document context passed to the model (e.g. ``{"filename": ...}``)
            on_progress: Called with human-readable status messages

        Returns:
            Raw records, one per detected letter

        Raises:
            InvalidInputError: Unsupported type, empty content or unreadable answer
            UnauthorizedError: Credentials rejected
            RateLimitedError, ServiceUnavailableError, ExtractionTimeoutError:
                Transient failures that outlasted every retry
        """
        normalized = (mime_type or "").strip().lower()
        if normalized not in SUPPORTED_MIME_TYPES:
            raise UnsupportedMimeTypeError(mime_type or "", list(SUPPORTED_MIME_TYPES))
        if not content:
            raise InvalidInputError(FILE_ERROR_MESSAGE, {"reason": "empty content"})

        metadata = metadata or {}
        records: List[RawRecord] = []

        async for attempt in self._retrying(on_progress):
            with attempt:
                number = attempt.retry_state.attempt_number
                self._emit(
                    on_progress,
                    "Initiating AI Analysis..."
                    if number == 1
                    else f"Retrying analysis (Attempt {number}/{self.max_attempts})...",
                )
                records = await self._generate(content, normalized, metadata, on_progress)

        logger.info(f"Extracted {len(records)} letter(s) from {metadata.get('filename', 'document')}")
        return records


def create_extraction_client() -> GeminiExtractionClient:
    """Create a Gemini client from settings."""
    return GeminiExtractionClient()
