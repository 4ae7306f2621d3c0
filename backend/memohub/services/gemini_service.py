"""
MemoHub Backend — Google Gemini Service Implementation
=======================================================

What:  Concrete LLMService backed by the Gemini text API.
How:   Prompt in, text out. One API call is the retried unit (tenacity,
       exponential backoff + jitter); a circuit breaker sits in front of
       the whole retried call.
Who:   Singleton used by AIService (memo analysis, semantic search) and
       by the health route.

Resilience Strategy:
    1. No API key configured        → LLMServiceError, no network call
    2. Breaker OPEN                 → CircuitBreakerOpenError, no network call
    3. Transient API failure        → retried up to RETRY_MAX_ATTEMPTS
    4. Retries exhausted            → breaker failure + LLMServiceError
    5. Answer blocked by the model  → LLMServiceError, not retried,
                                      does not count against the breaker
    Both error types map to HTTP 503.
"""

import logging
import time
import uuid
from typing import Callable, Optional

import google.generativeai as genai
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from memohub.config import settings
from memohub.exceptions import CircuitBreakerOpenError, LLMServiceError
from memohub.services.llm_base import LLMService

logger = logging.getLogger(__name__)


class BlockedResponseError(Exception):
    """The model answered but withheld the text (safety filter, empty candidate)."""


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Consecutive-failure breaker.

        closed     calls pass; each failure increments failure_count
        open       failure_count reached failure_threshold; calls are
                   refused until recovery_timeout seconds after opening
        half_open  the timeout elapsed; the next call is a probe.
                   Success closes the breaker, failure re-opens it.

    State is per process. Each uvicorn worker trips independently.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.opened_at: Optional[float] = None
        self._clock = clock

    def can_execute(self) -> bool:
        """True when a call may go out; raises CircuitBreakerOpenError while open."""
        if self.state != self.OPEN:
            return True

        waited = self._clock() - (self.opened_at or 0.0)
        if waited < self.recovery_timeout:
            raise CircuitBreakerOpenError(recovery_time=max(1, int(self.recovery_timeout - waited)))

        logger.info("Circuit breaker half-open after %.1fs, letting one probe through", waited)
        self.state = self.HALF_OPEN
        return True

    def record_success(self) -> None:
        if self.state != self.CLOSED:
            logger.info("Circuit breaker closed: Gemini recovered")
        self.state = self.CLOSED
        self.failure_count = 0
        self.opened_at = None

    def record_failure(self) -> None:
        self.failure_count += 1
        probe_failed = self.state == self.HALF_OPEN
        if probe_failed or self.failure_count >= self.failure_threshold:
            if self.state != self.OPEN:
                logger.warning(
                    "Circuit breaker open (%s, %d consecutive failures)",
                    "probe failed" if probe_failed else "threshold reached",
                    self.failure_count,
                )
            self.state = self.OPEN
            self.opened_at = self._clock()


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiService(LLMService):
    """Gemini text generation for memo analysis and semantic ranking."""

    SYSTEM_INSTRUCTION = (
        "You are a writing assistant inside a note-taking application. "
        "Answer in the language of the note you are given. "
        "Follow the requested output format exactly and do not add preambles."
    )

    def __init__(self):
        if settings.ai_enabled:
            genai.configure(api_key=settings.gemini_api_key)

        self.model = genai.GenerativeModel(
            settings.gemini_model,
            system_instruction=self.SYSTEM_INSTRUCTION,
            generation_config={"max_output_tokens": settings.ai_max_output_tokens},
        )
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )
        logger.info(
            "GeminiService ready: model=%s breaker=%d failures/%ds",
            settings.gemini_model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    @property
    def circuit_state(self) -> str:
        return self.circuit_breaker.state

    async def generate_text(self, prompt: str) -> str:
        if not settings.ai_enabled:
            raise LLMServiceError(message="AI features are not configured on this server")

        call_id = uuid.uuid4().hex[:8]
        self.circuit_breaker.can_execute()
        logger.info("[%s] Gemini request (%d prompt chars)", call_id, len(prompt))

        try:
            text = await self._call_gemini_with_retry(prompt, call_id)
        except BlockedResponseError as e:
            # The API itself is healthy; only this answer is unusable
            self.circuit_breaker.record_success()
            logger.warning("[%s] Gemini withheld the answer: %s", call_id, e)
            raise LLMServiceError(
                message="The AI service declined to answer this request.",
                context={"request_id": call_id},
            )
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] Gemini failed after %d attempt(s): %s",
                call_id, settings.retry_max_attempts, e, exc_info=True,
            )
            raise LLMServiceError(
                message="AI analysis failed after multiple attempts. Please try again later.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"request_id": call_id, "error_type": type(e).__name__},
            )

        self.circuit_breaker.record_success()
        return text

    @retry(
        retry=retry_if_not_exception_type(BlockedResponseError),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _call_gemini_with_retry(self, prompt: str, call_id: str) -> str:
        """Exactly one API call; the breaker is handled by the caller."""
        started = time.perf_counter()
        response = await self.model.generate_content_async(
            prompt,
            request_options={"timeout": settings.ai_request_timeout},
        )
        try:
            text = (response.text or "").strip()
        except ValueError as e:
            # response.text raises when the candidate has no text parts
            raise BlockedResponseError(str(e)) from e

        logger.info(
            "[%s] Gemini answered in %.0fms (%d chars)",
            call_id, (time.perf_counter() - started) * 1000, len(text),
        )
        return text

    async def health_check(self) -> bool:
        """Lists models: proves key and connectivity without spending tokens."""
        try:
            available = {m.name for m in genai.list_models()}
        except Exception as e:
            logger.warning("Gemini health check failed: %s", e)
            return False
        if f"models/{settings.gemini_model}" not in available:
            logger.warning("Configured model %s is not offered to this key", settings.gemini_model)
        return True


# One instance per process so every request shares the breaker
gemini_service = GeminiService()
