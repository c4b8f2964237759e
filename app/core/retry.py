# app/core/retry.py
import time
from typing import Any, Callable


class RetryError(Exception):
    """
    Raised when all retry attempts fail.
    """

    def __init__(self, last_exception: Exception, attempts: int) -> None:
        super().__init__(f"Retry failed after {attempts} attempts: {last_exception!s}")
        self.last_exception = last_exception
        self.attempts = attempts


def retry_call(
    func: Callable[..., Any],
    *args: Any,
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> Any:
    """
    Call `func` and retry on the given exception types with exponential backoff.

    Args:
        func: The callable to retry.
        *args: Positional arguments for the callable.
        max_attempts: Maximum number of attempts (>= 1).
        delay: Initial delay between attempts (seconds).
        backoff: Backoff multiplier for delay.
        exceptions: Exception types that count as transient.
            Anything else propagates immediately.
        sleep: Sleep function (swapped out in tests).
        **kwargs: Keyword arguments for the callable.

    Returns:
        The result of the callable if one attempt succeeds.

    Raises:
        RetryError: If all attempts fail with a transient exception.
    """
    attempt = 0
    current_delay = delay
    while True:
        try:
            return func(*args, **kwargs)
        except exceptions as exc:
            attempt += 1
            if attempt >= max_attempts:
                raise RetryError(last_exception=exc, attempts=attempt) from exc
            sleep(current_delay)
            current_delay *= backoff
