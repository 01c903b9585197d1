"""Async OpenAI API wrapper used for report synthesis."""

from __future__ import annotations

import asyncio
import logging
import random
import re
from typing import Any, Callable

from openai import AsyncOpenAI, APIConnectionError, APITimeoutError, RateLimitError

logger = logging.getLogger(__name__)

MODEL = "gpt-4o"
MAX_TOKENS = 4_096

# Retry settings for rate-limit (429) errors
_RATE_LIMIT_MAX_RETRIES = 6
_RATE_LIMIT_BASE_DELAY = 5  # seconds — minimum floor for exponential backoff

TokensCallback = Callable[[int, int], None]
"""Called with (input_tokens, output_tokens) when a completion finishes."""


def _parse_retry_after(exc: RateLimitError) -> float | None:
    """Extract the suggested retry delay from an OpenAI rate limit error.

    Checks the ``Retry-After`` header first, then falls back to parsing
    the "Please try again in Xs / Xms" substring from the error message.
    Returns seconds as a float, or None if not found.
    """
    try:
        headers = exc.response.headers  # type: ignore[union-attr]
        if retry_after := headers.get("retry-after"):
            return float(retry_after)
    except (AttributeError, TypeError, ValueError):
        pass

    m = re.search(r"try again in (\d+(?:\.\d+)?)\s*(ms|s)\b", str(exc), re.IGNORECASE)
    if m:
        value = float(m.group(1))
        return value / 1000 if m.group(2).lower() == "ms" else value

    return None


class LLMClient:
    """Thin async wrapper around the OpenAI SDK.

    ``simple_completion`` sends one system + user message pair and returns
    the reply text, retrying on rate limits and transient connection errors.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str = MODEL,
        max_tokens: int = MAX_TOKENS,
    ) -> None:
        self._client = AsyncOpenAI(api_key=api_key or None)
        self.model = model
        self.max_tokens = max_tokens

    async def aclose(self) -> None:
        await self._client.close()

    async def _call_with_retry(self, **kwargs: Any) -> Any:
        """Call chat.completions.create with exponential backoff on 429 errors.

        Waits at least as long as OpenAI's suggested retry-after time, uses
        exponential backoff as a floor, and adds ±25% jitter so concurrent
        requests don't retry in lockstep.

        Fails immediately if the request itself exceeds the token limit.
        """
        for attempt in range(_RATE_LIMIT_MAX_RETRIES):
            try:
                return await self._client.chat.completions.create(**kwargs)
            except RateLimitError as exc:
                msg = str(exc).lower()
                if "request too large" in msg or "context_length_exceeded" in msg:
                    logger.error("Request exceeds token limit (not retryable): %s", exc)
                    raise
                if attempt == _RATE_LIMIT_MAX_RETRIES - 1:
                    raise

                backoff = _RATE_LIMIT_BASE_DELAY * (2 ** attempt)
                suggested = _parse_retry_after(exc)
                base_delay = max(suggested or 0.0, backoff)
                jitter = random.uniform(-0.25 * base_delay, 0.25 * base_delay)
                delay = max(1.0, base_delay + jitter)

                logger.warning(
                    "Rate limited (429), retrying in %.1fs (attempt %d/%d, "
                    "suggested=%.1fs, backoff=%ds): %s",
                    delay, attempt + 1, _RATE_LIMIT_MAX_RETRIES,
                    suggested or 0.0, backoff, exc,
                )
                await asyncio.sleep(delay)
            except (APIConnectionError, APITimeoutError) as exc:
                if attempt == _RATE_LIMIT_MAX_RETRIES - 1:
                    raise
                # Transient network / TLS errors — short backoff capped at ~40 s
                backoff = _RATE_LIMIT_BASE_DELAY * (2 ** min(attempt, 3))
                jitter = random.uniform(-0.25 * backoff, 0.25 * backoff)
                delay = max(2.0, backoff + jitter)
                logger.warning(
                    "Connection error, retrying in %.1fs (attempt %d/%d): %s",
                    delay, attempt + 1, _RATE_LIMIT_MAX_RETRIES, exc,
                )
                await asyncio.sleep(delay)

    async def simple_completion(
        self,
        *,
        system: str,
        user_message: str,
        json_mode: bool = False,
        on_tokens: TokensCallback | None = None,
    ) -> str:
        """Single request/response with no tools.

        When ``json_mode`` is True the OpenAI API guarantees the response is
        valid JSON; report synthesis uses plain text.
        """
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user_message},
            ],
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self._call_with_retry(**kwargs)
        usage = getattr(response, "usage", None)
        if on_tokens and usage:
            on_tokens(getattr(usage, "prompt_tokens", 0), getattr(usage, "completion_tokens", 0))
        return response.choices[0].message.content or ""


# ======================================================================
# Dry-run mock client — zero API calls
# ======================================================================

_DRY_RUN_SUMMARY = """\
## 1. Threat assessment
**MEDIUM** — steady product cadence and an engineering-heavy hiring push, but
reviews point to weak reporting.

## 2. Key strategic moves
Workflow automation launch paired with backend hiring suggests a platform play.

## 3. Vulnerabilities
Reporting and per-seat pricing are the most cited complaints.

## 4. Predictions
Expect an enterprise tier with usage-based pricing within two quarters.

## 5. Recommended actions
1. Lead with reporting in head-to-head demos.
2. Offer a flat-rate plan for teams above 50 seats.
3. Publish an automation comparison page.
4. Target their G2 reviewers citing reporting gaps.
5. Watch their careers page for platform roles.
"""


class DryRunClient:
    """Drop-in replacement for LLMClient that makes zero API calls."""

    async def simple_completion(
        self,
        *,
        system: str,
        user_message: str,
        json_mode: bool = False,
        on_tokens: TokensCallback | None = None,
    ) -> str:
        logger.info("[dry-run] synthesis prompt: %d chars", len(user_message))
        return _DRY_RUN_SUMMARY

    async def aclose(self) -> None:
        return None
