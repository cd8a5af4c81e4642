import time
from typing import Any, Callable, Optional, TypeVar

from botocore.exceptions import ClientError
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

T = TypeVar("T")

COLD_START_MESSAGE = "Lambda is initializing your function"
COLD_START_ERROR_CODE = "CodeArtifactUserPendingException"
MAX_ATTEMPTS = 5


def error_code(exc: BaseException) -> Optional[str]:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return getattr(exc, "code", None)


def is_cold_start_error(exc: BaseException) -> bool:
    """True for errors raised while the delegated function is still initializing."""
    return (
        COLD_START_MESSAGE in str(exc)
        or type(exc).__name__ == COLD_START_ERROR_CODE
        or error_code(exc) == COLD_START_ERROR_CODE
    )


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0
    print(
        f"[Warning: cold start detected; retrying attempt {retry_state.attempt_number + 1}"
        f"/{MAX_ATTEMPTS} in {delay:.0f}s: {exc}]"
    )


def call_with_cold_start_retry(
    fn: Callable[..., T],
    *args: Any,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> T:
    """
    Call `fn`, retrying only on the cold-start signature with 1s, 2s, 4s, 8s
    backoff and at most five attempts. The last error is re-raised.
    """
    retrying = Retrying(
        stop=stop_after_attempt(MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception(is_cold_start_error),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    return retrying(fn, *args, **kwargs)
