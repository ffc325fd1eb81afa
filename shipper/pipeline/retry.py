"""Bounded retry for externally facing commands.

Only failures that look transient (network, rate limits, package-manager
locks) are retried. Anything else is returned on the first attempt so
compile errors and rejected credentials fail immediately.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from time import sleep
from typing import TypeVar

from shipper.core.config import RetryConfig
from shipper.core.result import Err, Ok, Result
from shipper.output.console import ConsoleProtocol, Style
from shipper.pipeline.errors import PipelineError
from shipper.platform.process import ProcessError

_TRANSIENT_MARKERS = (
    "timed out",
    "timeout",
    "connection reset",
    "connection refused",
    "temporarily unavailable",
    "temporary failure in name resolution",
    "could not resolve host",
    "service unavailable",
    "bad gateway",
    "gateway timeout",
    "tls handshake timeout",
    "network is unreachable",
    "remote end hung up unexpectedly",
    "failed to fetch",
    "could not get lock",
    "http 429",
    "http 500",
    "http 502",
    "http 503",
    "http 504",
)


@dataclass(frozen=True, slots=True)
class RetryExhausted:
    attempts: int
    last: ProcessError


def is_transient_error(error: ProcessError) -> bool:
    text = error.output.lower()
    return any(marker in text for marker in _TRANSIENT_MARKERS)


T = TypeVar("T")


def retry_process(
    call: Callable[[], Result[T, ProcessError]],
    *,
    policy: RetryConfig,
    is_transient: Callable[[ProcessError], bool] = is_transient_error,
    console: ConsoleProtocol | None = None,
) -> Result[T, ProcessError | RetryExhausted]:
    """Run call up to policy.attempts times with linear backoff.

    Returns:
        Ok on the first success; Err(ProcessError) for a non-transient
        failure; Err(RetryExhausted) when every attempt failed transiently.
    """
    attempts = max(1, policy.attempts)
    last: ProcessError | None = None
    for attempt in range(attempts):
        result = call()
        if isinstance(result, Ok):
            return result

        last = result.error
        if not is_transient(last):
            return Err(last)
        if attempt < attempts - 1:
            delay = policy.delay_seconds * (attempt + 1)
            if console is not None:
                console.print(
                    f"{last} (transient), retrying in {delay:.1f}s "
                    f"[{attempt + 2}/{attempts}]",
                    Style.DIM,
                )
            sleep(delay)

    assert last is not None
    return Err(RetryExhausted(attempts=attempts, last=last))


def exhausted_error(
    failure: RetryExhausted, *, what: str, target: str | None = None
) -> PipelineError:
    return PipelineError(
        kind="retries_exhausted",
        message=f"{what}: gave up after {failure.attempts} attempts",
        hint=failure.last.output or str(failure.last),
        target=target,
    )
