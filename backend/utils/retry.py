import asyncio
import logging
from typing import Callable, Optional, Tuple, Type, TypeVar, Any
from functools import wraps

logger = logging.getLogger("verifier.retry")

T = TypeVar('T')


class RetryConfig:
    MAX_ATTEMPTS = 2
    BASE_DELAY = 0.0
    MAX_DELAY = 5.0
    EXPONENTIAL_BASE = 2


def async_retry(
    max_attempts: int = RetryConfig.MAX_ATTEMPTS,
    base_delay: float = RetryConfig.BASE_DELAY,
    max_delay: float = RetryConfig.MAX_DELAY,
    exponential_base: float = RetryConfig.EXPONENTIAL_BASE,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    label: Optional[str] = None
):
    """
    Retry an async callable on the given exceptions with exponential backoff.
    Exceptions outside `exceptions` (and cancellation) propagate immediately.
    """

    def decorator(func: Callable) -> Callable:
        name = label or func.__name__

        @wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        logger.error(
                            f"{name} failed after {max_attempts} attempts: {e}",
                            extra={"operation": name, "attempts": max_attempts}
                        )
                        raise

                    delay = min(base_delay * (exponential_base ** (attempt - 1)), max_delay)
                    logger.warning(
                        f"{name} failed (attempt {attempt}/{max_attempts}), "
                        f"retrying in {delay:.2f}s: {e}",
                        extra={"operation": name, "attempt": attempt}
                    )
                    if delay > 0:
                        await asyncio.sleep(delay)

        return wrapper
    return decorator
