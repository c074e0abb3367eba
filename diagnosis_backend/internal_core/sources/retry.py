from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from ..config import ServiceConfig
from .base import SourceError, SourceRejectionError, SourceTransientError, SourceUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

TUNNEL_ERROR_MARKER = "Cloudflare Tunnel error"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    timeout_seconds: float = 120.0
    early_retry_delay_seconds: float = 10.0
    early_retry_count: int = 2
    backoff_base_seconds: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Delay after the given 1-based failed attempt: flat early retries, then exponential."""
        if attempt <= self.early_retry_count:
            return float(self.early_retry_delay_seconds)
        return float((2**attempt) * self.backoff_base_seconds)

    @classmethod
    def from_service_config(cls, cfg: ServiceConfig) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, int(cfg.SOURCE_MAX_ATTEMPTS)),
            timeout_seconds=float(cfg.SOURCE_TIMEOUT_SECONDS),
            early_retry_delay_seconds=float(cfg.SOURCE_EARLY_RETRY_DELAY_SECONDS),
            early_retry_count=int(cfg.SOURCE_EARLY_RETRY_COUNT),
            backoff_base_seconds=float(cfg.SOURCE_BACKOFF_BASE_SECONDS),
        )


def classify_http_failure(source_name: str, status_code: int, body_text: str) -> SourceError:
    snippet = str(body_text or "").strip()[:300]
    detail = f"HTTP {status_code}: {snippet}" if snippet else f"HTTP {status_code}"
    if status_code == 530 or TUNNEL_ERROR_MARKER in snippet:
        return SourceTransientError("TUNNEL_UNAVAILABLE", f"Upstream tunnel unavailable ({detail})", source_name)
    if status_code == 429:
        return SourceTransientError("RATE_LIMITED", f"Rate limited by upstream ({detail})", source_name)
    if status_code == 408:
        return SourceTransientError("TIMEOUT", f"Upstream request timed out ({detail})", source_name)
    if status_code >= 500:
        return SourceTransientError("UPSTREAM_ERROR", f"Upstream server error ({detail})", source_name)
    if status_code in {401, 403}:
        return SourceRejectionError("AUTH_FAILED", f"Authentication failed ({detail})", source_name)
    if status_code == 413:
        return SourceRejectionError("PAYLOAD_TOO_LARGE", f"Audio rejected as too large ({detail})", source_name)
    if status_code == 415:
        return SourceRejectionError("UNSUPPORTED_FORMAT", f"Audio format rejected ({detail})", source_name)
    return SourceRejectionError("REJECTED", f"Audio rejected by upstream ({detail})", source_name)


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    source_name: str,
    sleep: Optional[Sleep] = None,
) -> T:
    """Run `operation` until it succeeds, is rejected, or attempts run out.

    Each attempt is bounded by `policy.timeout_seconds`; a timed-out attempt
    counts as a transient failure. Exhaustion raises SourceUnavailable carrying
    the last failure's code.
    """
    sleeper = sleep or asyncio.sleep
    attempts = max(1, int(policy.max_attempts))
    attempt = 0
    while True:
        attempt += 1
        try:
            return await asyncio.wait_for(operation(), timeout=policy.timeout_seconds)
        except SourceRejectionError:
            raise
        except SourceTransientError as exc:
            failure: SourceError = exc
        except (asyncio.TimeoutError, httpx.TimeoutException):
            failure = SourceTransientError("TIMEOUT", f"No response within {policy.timeout_seconds:g}s", source_name)
        except httpx.TransportError as exc:
            failure = SourceTransientError("NETWORK_ERROR", f"Network error: {exc}", source_name)

        logger.warning(
            "source attempt failed source=%s attempt=%d/%d code=%s",
            source_name,
            attempt,
            attempts,
            failure.code,
        )
        if attempt >= attempts:
            raise SourceUnavailable(
                failure.code,
                f"{failure.message} (gave up after {attempts} attempts)",
                source_name,
            )
        await sleeper(policy.delay_for(attempt))
