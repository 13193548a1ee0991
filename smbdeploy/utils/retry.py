"""
Bounded retry for remote operations
"""
from typing import Callable

from ..errors import DeployError, LocalIOError, RetryExhausted

# Failures worth another attempt. Anything else is a bug and propagates.
RETRYABLE = (DeployError, OSError)


def plural(count: int, one: str, many: str) -> str:
    return f"{count:,} {one if count == 1 else many}"


def attempt(ctx, config, action: Callable[[], bool], failure: str, subject: str) -> bool:
    """
    Run *action* up to config.attempts times, waiting
    config.write_retry_delay_seconds between tries.

    *action* returns True on success; returning False or raising one of
    RETRYABLE counts as a failed attempt. After the last failure a single
    error naming *subject* is recorded and the run is cancelled.
    LocalIOError is never retried: it is recorded as is and cancels at once.
    Returns False without recording anything if the run is already cancelled.
    """
    attempts = config.attempts
    last_exc = None

    for n in range(1, attempts + 1):
        if ctx.cancelled():
            return False
        try:
            if action():
                return True
            last_exc = None
        except LocalIOError as exc:
            ctx.fail(exc)
            return False
        except RETRYABLE as exc:
            last_exc = exc

        if ctx.cancelled():
            return False
        if n < attempts:
            ctx.retrying(n, attempts, subject)
            if not ctx.wait(config.write_retry_delay_seconds):
                return False

    detail = f" ({last_exc})" if last_exc else ""
    message = f"{failure} after {plural(attempts, 'attempt', 'attempts')}: `{subject}`{detail}"
    ctx.fail(RetryExhausted(message, path=subject))
    return False

