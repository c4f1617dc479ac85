"""Readiness waiter for resources that complete asynchronously.

A resource such as a certificate is accepted by the provider immediately
but only becomes usable after an external, possibly manual, step. The
waiter polls the provider's status until the resource is ready, the timeout
elapses, or the run is cancelled:

    PENDING -> READY | TIMED_OUT | CANCELLED
"""

import time
from enum import Enum
from typing import Callable, Optional
from pydantic import BaseModel, Field
from ..provider.base import Provider, ProviderStatus
from ..utils.cancellation import CancellationToken
from ..utils.errors import FatalProviderError, TransientProviderError
from ..utils.logging import get_logger

logger = get_logger("waiter.readiness")


class ReadinessState(str, Enum):
    """Waiter state; every state but PENDING is terminal."""
    PENDING = "pending"
    READY = "ready"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self is not ReadinessState.PENDING


class ReadinessResult(BaseModel):
    """Outcome of one readiness wait."""
    state: ReadinessState
    polls: int = Field(0, ge=0)
    elapsed: float = Field(0.0, ge=0)


class ReadinessWaiter:
    """Poll a provider's status query until a terminal readiness state."""

    def __init__(self, provider: Provider, clock: Callable[[], float] = time.monotonic):
        self.provider = provider
        self.clock = clock

    def await_ready(
        self,
        identifier: str,
        poll_interval: float,
        timeout: float,
        cancel: Optional[CancellationToken] = None,
    ) -> ReadinessResult:
        """
        Wait until the resource reports READY.

        Each pause between polls is a blocking wait on the cancellation token
        bounded by the poll interval and the remaining time, so a timeout is
        reported no later than one poll call after it elapses.

        Args:
            identifier: Provider identifier of the resource
            poll_interval: Seconds between status queries
            timeout: Seconds before giving up with TIMED_OUT
            cancel: Run-wide cancellation token

        Returns:
            ReadinessResult with the terminal state

        Raises:
            FatalProviderError: If the provider reports the resource FAILED
                or the status query fails fatally
        """
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        cancel = cancel or CancellationToken()
        started = self.clock()
        deadline = started + timeout
        polls = 0
        state = ReadinessState.PENDING

        while True:
            if cancel.cancelled:
                state = ReadinessState.CANCELLED
                break

            try:
                status = self.provider.poll_status(identifier)
                polls += 1
            except TransientProviderError as e:
                polls += 1
                logger.warning(f"Transient error polling {identifier}, continuing: {e}")
                status = ProviderStatus.PENDING

            if status == ProviderStatus.READY:
                state = ReadinessState.READY
                break
            if status == ProviderStatus.FAILED:
                raise FatalProviderError(f"{identifier} reported failed while waiting for readiness")

            remaining = deadline - self.clock()
            if remaining <= 0:
                state = ReadinessState.TIMED_OUT
                break
            logger.debug(f"{identifier} still pending after {polls} polls; {remaining:.1f}s left")
            if cancel.wait(min(poll_interval, remaining)):
                state = ReadinessState.CANCELLED
                break

        elapsed = max(0.0, self.clock() - started)
        logger.info(f"Readiness wait for {identifier} finished: {state.value} after {polls} polls ({elapsed:.2f}s)")
        return ReadinessResult(state=state, polls=polls, elapsed=elapsed)
