"""AI phishing assessment over a local language model."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace

from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception, stop_after_attempt

from . import constants
from .ai_parser import parse_ai_result
from .cache import AiResultCache
from .errors import ModelSessionError, ModelUnavailableError
from .llm import UNAVAILABLE, LanguageModel, ModelSession
from .models import AiAvailability, AiResult, AiTimeout, AiUnavailable, AiVerdict, EmailAnalysisRequest
from .prompt import SYSTEM_PROMPT, build_user_prompt

logger = logging.getLogger(__name__)


def _is_session_failure(exc: BaseException) -> bool:
    # Cancellation and a missing model are final; anything else earns a fresh session
    return isinstance(exc, Exception) and not isinstance(exc, ModelUnavailableError)


class AiScoringEngine:
    """Owns the language-model session and turns messages into AiResults.

    Session lifecycle:
      * created on first use with the scoring rubric as system prompt
      * every analysis runs on a single-use clone that is always destroyed
      * any failure discards the session; the next attempt creates a new one
      * ``reset()`` (install/update) forgets session, availability and cache

    Availability is checked once. A missing capability or an "unavailable"
    status stays that way until ``reset()``.
    """

    def __init__(
        self,
        model: LanguageModel | None,
        cache: AiResultCache | None = None,
        timeout: float | None = None,
    ) -> None:
        self.model = model
        self.cache = cache or AiResultCache()
        self.timeout = constants.AI_ANALYSIS_TIMEOUT if timeout is None else timeout
        self._available: bool | None = None
        self._session: ModelSession | None = None
        self._session_lock = asyncio.Lock()

    @property
    def has_session(self) -> bool:
        return self._session is not None

    async def _query_status(self) -> str | None:
        try:
            return await self.model.availability()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Language model availability check failed: %s", exc)
            return None

    async def check_availability(self) -> bool:
        """Return whether analysis can run. Memoized, never raises."""
        if self._available is not None:
            return self._available
        if self.model is None:
            self._available = False
            return False
        status = await self._query_status()
        self._available = status is not None and status != UNAVAILABLE
        logger.debug("Language model status: %s", status)
        return self._available

    async def availability_report(self) -> AiAvailability:
        """Fresh (un-memoized) status for display."""
        if self.model is None:
            return AiAvailability(available=False, has_api=False, status=None)
        status = await self._query_status()
        return AiAvailability(
            available=status is not None and status != UNAVAILABLE,
            has_api=True,
            status=status,
        )

    async def get_session(self) -> ModelSession | None:
        # Concurrent first analyses share one create call
        async with self._session_lock:
            if self._session is not None:
                return self._session
            try:
                self._session = await self.model.create(SYSTEM_PROMPT)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Could not create language model session: %s", exc)
                self._available = False
                return None
            return self._session

    def invalidate_session(self) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        try:
            session.destroy()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Destroying stale session failed: %s", exc)

    def reset(self) -> None:
        self.invalidate_session()
        self._available = None
        self.cache.clear()

    async def _prompt_once(self, user_prompt: str, retrying: bool = False) -> tuple[str, int]:
        session = await self.get_session()
        if session is None:
            if retrying:
                # A failed re-create on the retry is an analysis failure, not a missing model
                raise ModelSessionError("Language model session could not be recreated")
            raise ModelUnavailableError("Language model session could not be created")

        clone = None
        try:
            clone = await session.clone()
            started = time.monotonic()
            raw = await clone.prompt(user_prompt)
            return raw, int((time.monotonic() - started) * 1000)
        except Exception:
            # Usually the session was collected after idling
            self.invalidate_session()
            raise
        finally:
            if clone is not None:
                clone.destroy()

    async def _analyze_uncached(self, data: EmailAnalysisRequest, key: str) -> AiResult | AiUnavailable:
        if not await self.check_availability():
            return AiUnavailable()

        user_prompt = build_user_prompt(data)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(constants.AI_MAX_ATTEMPTS),
                retry=retry_if_exception(_is_session_failure),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    retried = attempt.retry_state.attempt_number > 1
                    raw, duration_ms = await self._prompt_once(user_prompt, retrying=retried)
        except ModelUnavailableError:
            return AiUnavailable()
        except Exception as exc:  # noqa: BLE001
            logger.warning("AI analysis failed: %s", exc)
            return AiResult(
                verdict=AiVerdict.CAUTION,
                reasons=["AI analysis failed"],
                debug={"error": str(exc) or type(exc).__name__},
            )

        result = parse_ai_result(raw)
        result.debug = {
            "raw_response": raw,
            "user_prompt": user_prompt,
            "duration_ms": duration_ms,
            "cached": False,
            "retried": retried,
        }
        self.cache.set(key, result)
        return result

    async def analyze(
        self, data: EmailAnalysisRequest, skip_cache: bool = False
    ) -> AiResult | AiUnavailable | AiTimeout:
        """Assess one message. Bounded by ``timeout`` seconds."""
        key = AiResultCache.key_for(data.message_id, data.sender_email, data.subject)
        if skip_cache:
            self.cache.discard(key)

        cached = self.cache.get(key)
        if cached is not None:
            return replace(
                cached, reasons=list(cached.reasons), debug={**cached.debug, "cached": True}
            )

        try:
            return await asyncio.wait_for(self._analyze_uncached(data, key), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("AI analysis timed out after %ss", self.timeout)
            return AiTimeout()
