"""
OpenAI Client Helpers

Shared by the embedding and explanation services:
- get_openai_client(): lazily built, process-wide OpenAI client
- call_with_retry(): local retry loop for transient upstream failures
"""
import logging
import time
from typing import Callable, Optional, TypeVar

import openai
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from ai_matching.exceptions import UpstreamServiceError

logger = logging.getLogger(__name__)

T = TypeVar('T')

RATE_LIMIT_STATUS = 429

_client = None


def get_openai_client() -> openai.OpenAI:
    """
    Return the shared OpenAI client, building it on first use.

    Raises:
        ImproperlyConfigured: if ``OPENAI_API_KEY`` is not set
    """
    global _client
    if _client is None:
        api_key = getattr(settings, 'OPENAI_API_KEY', '')
        if not api_key:
            raise ImproperlyConfigured('OPENAI_API_KEY is not configured')
        _client = openai.OpenAI(
            api_key=api_key,
            timeout=getattr(settings, 'OPENAI_TIMEOUT', 30.0),
            max_retries=0,
        )
    return _client


def reset_openai_client():
    """Drop the cached client so the next call rebuilds it from settings."""
    global _client
    _client = None


def status_code_of(error: Exception) -> Optional[int]:
    """HTTP status carried by an OpenAI error, if any."""
    if isinstance(error, openai.RateLimitError):
        return RATE_LIMIT_STATUS
    return getattr(error, 'status_code', None)


def call_with_retry(
    api_call: Callable[[], T],
    service: str,
    max_attempts: Optional[int] = None,
    delay: Optional[float] = None
) -> T:
    """
    Run ``api_call`` up to ``max_attempts`` times.

    A rate-limited attempt (HTTP 429) waits ``delay * 2^(attempt-1)`` seconds
    before the next try; any other failure waits ``delay`` seconds.

    Args:
        api_call: Zero-argument callable performing one upstream request
        service: Logical name used in logs and in the raised error
        max_attempts: Defaults to ``AI_MATCHING_MAX_RETRIES``
        delay: Base delay in seconds, defaults to ``AI_MATCHING_RETRY_DELAY``

    Raises:
        UpstreamServiceError: after the last failed attempt, chained from the
            original error
    """
    if max_attempts is None:
        max_attempts = getattr(settings, 'AI_MATCHING_MAX_RETRIES', 3)
    if delay is None:
        delay = getattr(settings, 'AI_MATCHING_RETRY_DELAY', 1.0)
    max_attempts = max(1, int(max_attempts))

    last_error = None
    for attempt in range(1, max_attempts + 1):
        try:
            return api_call()
        except Exception as e:
            last_error = e
            logger.warning(
                f"OpenAI {service} call failed (attempt {attempt}/{max_attempts}): {e}"
            )
            if attempt == max_attempts:
                break
            if status_code_of(e) == RATE_LIMIT_STATUS:
                wait = delay * (2 ** (attempt - 1))
                logger.info(f"Rate limited, waiting {wait}s before retry")
            else:
                wait = delay
            if wait > 0:
                time.sleep(wait)

    raise UpstreamServiceError(
        service=service,
        attempts=max_attempts,
        status_code=status_code_of(last_error),
        message=f"OpenAI {service} call failed after {max_attempts} attempt(s): {last_error}",
    ) from last_error
