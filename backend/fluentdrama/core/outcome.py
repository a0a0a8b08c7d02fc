"""Typed outcome for best-effort external calls.

A scene never fails because one provider call did: each call resolves either
to `Ok(value)` or to `Degraded(placeholder, reason)`, so callers and tests can
tell a real result from a substituted one without matching placeholder text.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Generic, Optional, TypeVar, Union

import httpx

from fluentdrama.core.errors import QuotaExceededError

T = TypeVar("T")


class DegradeCause(str, Enum):
    """Why an operation fell back to its placeholder."""

    failed = "failed"
    timeout = "timeout"
    quota_exceeded = "quota_exceeded"

# Failures worth a second attempt; anything else degrades immediately.
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    asyncio.TimeoutError,
    ConnectionError,
    httpx.TransportError,
)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def degraded(self) -> bool:
        return False

    @property
    def quota_exceeded(self) -> bool:
        return False


@dataclass(frozen=True)
class Degraded(Generic[T]):
    value: T
    reason: str
    cause: DegradeCause = DegradeCause.failed

    @property
    def degraded(self) -> bool:
        return True

    @property
    def quota_exceeded(self) -> bool:
        return self.cause == DegradeCause.quota_exceeded


Outcome = Union[Ok[T], Degraded[T]]


async def attempt(
    operation: Callable[[], Awaitable[T]],
    *,
    fallback: T,
    label: str,
    timeout: Optional[float] = None,
    retries: int = 1,
    logger: Optional[logging.Logger] = None,
) -> "Outcome[T]":
    """Run `operation` with a timeout and at most `retries` retries.

    Only transient failures are retried. Quota denials are never retried.

    Args:
        operation: Zero-argument coroutine factory (called once per attempt).
        fallback: Placeholder value returned inside Degraded on failure.
        label: Short operation name used in the degrade reason and logs.
        timeout: Per-attempt timeout in seconds (None = no timeout).
        retries: Extra attempts allowed after a transient failure.
        logger: Logger for failure records.

    Returns:
        Ok(result) on success, Degraded(fallback, "<label>: <ErrorType>") otherwise.
    """
    log = logger or logging.getLogger(__name__)
    total = retries + 1
    for attempt_no in range(1, total + 1):
        try:
            if timeout is None:
                return Ok(await operation())
            return Ok(await asyncio.wait_for(operation(), timeout=timeout))
        except QuotaExceededError as exc:
            log.info(
                "%s skipped: quota exceeded (%d/%d)",
                label,
                exc.current,
                exc.limit,
                extra={"operation": label},
            )
            return Degraded(fallback, f"{label}: quota_exceeded", DegradeCause.quota_exceeded)
        except TRANSIENT_ERRORS as exc:
            log.warning(
                "%s failed (attempt %d/%d): %s",
                label,
                attempt_no,
                total,
                type(exc).__name__,
                extra={"operation": label, "attempt": attempt_no, "error_type": type(exc).__name__},
            )
            if attempt_no == total:
                cause = (
                    DegradeCause.timeout
                    if isinstance(exc, asyncio.TimeoutError)
                    else DegradeCause.failed
                )
                return Degraded(fallback, f"{label}: {type(exc).__name__}", cause)
        except Exception as exc:
            log.error(
                "%s failed: %s: %s",
                label,
                type(exc).__name__,
                exc,
                extra={"operation": label, "attempt": attempt_no, "error_type": type(exc).__name__},
            )
            return Degraded(fallback, f"{label}: {type(exc).__name__}")
    return Degraded(fallback, f"{label}: exhausted")
