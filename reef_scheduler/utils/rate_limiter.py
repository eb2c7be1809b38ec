"""
Rate limiter utility for outbound work.
Implements the token bucket algorithm with lazy, time-driven refill.
"""
import logging
import threading
import time
from typing import Callable, Dict, Optional

from ..domain.scheduling.ports import CancellationToken

logger = logging.getLogger(__name__)

# Floor for the back-off between blocking acquisition attempts.
MIN_WAIT_SECONDS = 0.01


class RateLimitTimeoutError(Exception):
    """Raised when a blocking acquisition would exceed its timeout."""
    pass


class TokenBucketRateLimiter:
    """Rate limiter using token bucket algorithm.

    Tokens refill continuously at ``requests_per_second`` up to
    ``capacity``.  Refill is computed on every acquisition attempt, so no
    timer thread is needed.  Refill and debit happen together under one
    lock per bucket.
    """

    def __init__(
        self,
        requests_per_second: float,
        burst_size: float = 0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter.

        Args:
            requests_per_second: Refill rate in tokens per second (must be > 0)
            burst_size: Maximum tokens held at once; <= 0 means same as the rate
            clock: Monotonic time source in seconds

        Example:
            # 2 requests per second, no extra burst
            limiter = TokenBucketRateLimiter(requests_per_second=2)

            # 1 request per second with bursts of 10
            limiter = TokenBucketRateLimiter(requests_per_second=1, burst_size=10)
        """
        if requests_per_second is None or requests_per_second <= 0:
            raise ValueError(f"requests_per_second must be positive, got {requests_per_second}")

        self.rate = float(requests_per_second)
        self.capacity = float(burst_size) if burst_size and burst_size > 0 else self.rate
        self._clock = clock
        self._available = self.capacity
        self._last_refill = clock()
        self._lock = threading.Lock()

        logger.info(
            f"Rate limiter initialized: {self.rate} tokens/s, capacity {self.capacity}"
        )

    def _refill(self) -> None:
        """Add tokens for the time elapsed since the last refill. Caller holds the lock."""
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._available = min(self.capacity, self._available + elapsed * self.rate)
            self._last_refill = now

    def _try_debit(self, tokens: float) -> tuple:
        """Refill then debit if possible. Returns (acquired, available_after)."""
        with self._lock:
            self._refill()
            if self._available >= tokens:
                self._available -= tokens
                return True, self._available
            return False, self._available

    @property
    def available_tokens(self) -> float:
        """Current balance after refilling."""
        with self._lock:
            self._refill()
            return self._available

    def try_acquire(self, tokens: float = 1) -> bool:
        """
        Take tokens if the balance allows it, without waiting.

        Returns:
            True if tokens were debited, False otherwise (nothing is debited)
        """
        if tokens <= 0:
            raise ValueError(f"tokens must be positive, got {tokens}")
        acquired, _ = self._try_debit(tokens)
        return acquired

    def acquire(
        self,
        tokens: float = 1,
        cancel: Optional[CancellationToken] = None,
        timeout_s: Optional[float] = None,
    ) -> bool:
        """
        Take tokens, waiting for refill as needed.

        Args:
            tokens: Number of tokens to debit
            cancel: Token whose cancellation aborts the wait
            timeout_s: Maximum total wait; None waits indefinitely

        Returns:
            True once tokens are debited, False if cancelled while waiting

        Raises:
            ValueError: If tokens exceed the bucket capacity
            RateLimitTimeoutError: If the next wait would exceed timeout_s
        """
        if tokens <= 0:
            raise ValueError(f"tokens must be positive, got {tokens}")
        if tokens > self.capacity:
            raise ValueError(
                f"cannot acquire {tokens} tokens from a bucket with capacity {self.capacity}"
            )

        start = self._clock()
        while True:
            if cancel is not None and cancel.is_cancelled():
                return False

            acquired, available = self._try_debit(tokens)
            if acquired:
                return True

            wait_time = max(MIN_WAIT_SECONDS, (tokens - available) / self.rate)
            if timeout_s is not None:
                waited = self._clock() - start
                if waited + wait_time > timeout_s:
                    raise RateLimitTimeoutError(
                        f"Rate limit wait {wait_time:.3f}s would exceed timeout "
                        f"{timeout_s:.3f}s ({waited:.3f}s already waited)"
                    )

            logger.debug(f"Rate limit reached, waiting {wait_time:.3f}s")
            if cancel is not None:
                if cancel.wait(wait_time):
                    return False
            else:
                time.sleep(wait_time)


class ServiceRateLimiters:
    """Manage one shared token bucket per named service."""

    def __init__(self):
        self._limiters: Dict[str, TokenBucketRateLimiter] = {}
        self._lock = threading.Lock()

    def get_limiter(
        self, service: str, requests_per_second: float, burst_size: float = 0
    ) -> TokenBucketRateLimiter:
        """
        Get or create the rate limiter for a service.

        The first call for a service fixes its rate and capacity.
        """
        with self._lock:
            if service not in self._limiters:
                self._limiters[service] = TokenBucketRateLimiter(
                    requests_per_second=requests_per_second, burst_size=burst_size
                )
            return self._limiters[service]

    def acquire_for_service(
        self, service: str, tokens: float = 1, cancel: Optional[CancellationToken] = None
    ) -> bool:
        """
        Block on the service's limiter.

        Returns True immediately for services without a limiter.
        """
        limiter = self._limiters.get(service)
        if limiter is None:
            logger.warning(f"No rate limiter configured for {service}")
            return True
        return limiter.acquire(tokens, cancel=cancel)


# Global registry
rate_limiters = ServiceRateLimiters()
