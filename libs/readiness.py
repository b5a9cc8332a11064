# =============================================================================
# Readiness Polling
# =============================================================================
# Polls the deployed application's port until it answers HTTP, the launched
# process dies, or the deadline passes.
# =============================================================================

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import requests

__all__ = ["ReadinessResult", "ReadinessError", "wait_for_ready"]

logger = logging.getLogger(__name__)


class ReadinessError(RuntimeError):
    """The application did not become ready after launch."""


@dataclass
class ReadinessResult:
    """
    Outcome of a readiness poll. All fields are JSON-serializable.

    `process_exited` is True when the alive check reported the launched
    process gone, including when the port answered on behalf of another
    process. `errors` holds every failed attempt in order.
    """

    url: str
    ready: bool
    attempts: int
    elapsed_seconds: float
    status_code: Optional[int] = None
    last_error: Optional[str] = None
    process_exited: bool = False
    errors: list[str] = field(default_factory=list)


def wait_for_ready(
    url: str,
    timeout: float = 60.0,
    interval: float = 2.0,
    request_timeout: float = 5.0,
    alive_check: Optional[Callable[[], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> ReadinessResult:
    """
    Poll `url` until any HTTP response is received.

    Any status code counts as ready: the contract is that the application
    responds on its port, not that a particular route succeeds.

    Args:
        url: Full URL to GET
        timeout: Overall deadline in seconds
        interval: Delay between attempts in seconds
        request_timeout: Per-request timeout in seconds
        alive_check: Optional callable; returning False aborts the poll and
            voids a response received while it is False
        sleep: Injected for tests
        clock: Injected for tests

    Returns:
        ReadinessResult (never raises for network errors)
    """
    start = clock()
    attempts = 0
    last_error: Optional[str] = None
    errors: list[str] = []

    def _result(ready: bool, **extra) -> ReadinessResult:
        return ReadinessResult(
            url=url,
            ready=ready,
            attempts=attempts,
            elapsed_seconds=round(clock() - start, 3),
            last_error=last_error,
            errors=errors,
            **extra,
        )

    while True:
        attempts += 1
        try:
            response = requests.get(url, timeout=request_timeout)
        except requests.RequestException as e:
            last_error = f"{type(e).__name__}: {e}"
            errors.append(last_error)
            logger.debug("Readiness probe %s not ready: %s", url, last_error)
        else:
            # A response from a port held by another process does not count
            if alive_check is not None and not alive_check():
                last_error = (
                    f"{url} answered {response.status_code} but the launched process has exited"
                )
                errors.append(last_error)
                logger.warning(last_error)
                return _result(False, status_code=response.status_code, process_exited=True)

            logger.info(
                "Readiness probe %s answered %s after %d attempt(s)",
                url,
                response.status_code,
                attempts,
            )
            return _result(True, status_code=response.status_code)

        if alive_check is not None and not alive_check():
            return _result(False, process_exited=True)

        if clock() - start + interval > timeout:
            return _result(False)

        sleep(interval)
