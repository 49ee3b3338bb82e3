from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple, Type, TypeVar

import httpx

from .exceptions import (
    DataUnavailable,
    FeedClientError,
    FeedRateLimitError,
    FeedServerError,
)

log = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE: Tuple[Type[BaseException], ...] = (
    FeedRateLimitError,
    FeedServerError,
    httpx.TimeoutException,
    httpx.TransportError,
)


class RateLimiter:
    def __init__(self, rps: float) -> None:
        self.min_interval = 0.0 if rps <= 0 else (1.0 / rps)
        self._last = 0.0
        self._lock = threading.Lock()

    def wait(self) -> None:
        if self.min_interval <= 0:
            return
        # Held across the sleep so concurrent callers are spaced one by one
        with self._lock:
            now = time.time()
            elapsed = now - self._last
            if elapsed < self.min_interval:
                time.sleep(self.min_interval - elapsed)
            self._last = time.time()


def backoff_delay(attempt: int, base: float) -> float:
    """Delay before the retry following `attempt` (1-indexed): base, 2*base, 4*base..."""
    return base * (2 ** (attempt - 1))


def with_retries(
    operation: Callable[[], T],
    *,
    max_attempts: int = 3,
    backoff_base: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = RETRYABLE,
    name: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run `operation` up to `max_attempts` times:
      - exponential backoff between attempts
      - exceptions outside `retry_on` propagate unchanged
      - exhaustion is reported as DataUnavailable
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    last_exc: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            result = operation()
            if attempt > 1:
                log.info("%s succeeded on attempt %s", name, attempt)
            return result
        except retry_on as e:  # type: ignore[misc]
            last_exc = e  # type: ignore[assignment]
            if attempt >= max_attempts:
                break
            delay = backoff_delay(attempt, backoff_base)
            log.warning(
                "%s failed (%s). Retry %s/%s in %.2fs",
                name,
                type(e).__name__,
                attempt,
                max_attempts - 1,
                delay,
            )
            sleep(delay)

    log.error("%s failed after %s attempts: %s", name, max_attempts, last_exc)
    raise DataUnavailable(f"{name} failed after {max_attempts} attempts: {last_exc}")


def _classify(resp: httpx.Response) -> None:
    status = resp.status_code
    if status == 429:
        raise FeedRateLimitError("Rate limited (HTTP 429). Reduce RPS or back off.")
    if 500 <= status <= 599:
        raise FeedServerError(f"Server error (HTTP {status}).")
    if 400 <= status <= 499:
        raise FeedClientError(f"Client error (HTTP {status}): {resp.text[:200]}")


def request_json(
    *,
    client: httpx.Client,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float,
    max_attempts: int,
    backoff_base: float,
    rate_limiter: RateLimiter,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """GET a JSON document with rate limiting, retries and error classification."""

    def _once() -> Any:
        rate_limiter.wait()
        resp = client.request("GET", url, headers=headers, params=params, timeout=timeout)
        _classify(resp)
        return resp.json()

    return with_retries(
        _once,
        max_attempts=max_attempts,
        backoff_base=backoff_base,
        name=f"GET {url}",
        sleep=sleep,
    )
