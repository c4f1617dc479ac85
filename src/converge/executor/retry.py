"""Bounded exponential-backoff retry for transient provider errors."""

from typing import Callable, Optional, TypeVar
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)
from ..config.models import RetryConfig
from ..utils.cancellation import CancellationToken
from ..utils.errors import TransientProviderError
from ..utils.logging import get_logger

logger = get_logger("executor.retry")

T = TypeVar("T")


def build_retrying(
    config: RetryConfig,
    cancel: CancellationToken,
    description: str,
    sleep: Optional[Callable[[float], None]] = None,
) -> Retrying:
    """
    Retry TransientProviderError with exponential backoff.

    Backoff sleeps wake up on cancellation and no further attempt is made
    once the run is cancelled. Any other exception propagates immediately.
    """

    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"{description}: transient error on attempt {retry_state.attempt_number} "
            f"({error}); retrying in {wait:.1f}s"
        )

    return Retrying(
        retry=retry_if_exception_type(TransientProviderError),
        stop=stop_after_attempt(config.max_attempts) | stop_when_event_set(cancel.event),
        wait=wait_exponential(
            multiplier=config.backoff_multiplier,
            min=config.backoff_min,
            max=config.backoff_max,
        ),
        sleep=sleep or cancel.wait,
        before_sleep=_log_retry,
        reraise=True,
    )


def call_with_retry(
    fn: Callable[[], T],
    config: RetryConfig,
    cancel: CancellationToken,
    description: str,
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """Call fn under the retry policy; the last error is re-raised when attempts run out."""
    return build_retrying(config, cancel, description, sleep)(fn)
