"""Tests for the readiness waiter."""

import threading
import pytest
from converge.provider.base import ProviderStatus
from converge.utils.cancellation import CancellationToken
from converge.utils.errors import FatalProviderError, TransientProviderError
from converge.waiter.readiness import ReadinessState, ReadinessWaiter


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class ScriptedProvider:
    """Returns a scripted sequence of statuses; each poll advances the fake clock."""

    def __init__(self, clock, statuses, step=10.0):
        self.clock = clock
        self.statuses = list(statuses)
        self.step = step
        self.polls = 0

    def poll_status(self, identifier):
        self.polls += 1
        self.clock.now += self.step
        status = self.statuses.pop(0) if self.statuses else ProviderStatus.PENDING
        if isinstance(status, Exception):
            raise status
        return status


@pytest.fixture
def clock():
    return FakeClock()


class TestReadinessWaiter:
    """Test the PENDING -> READY | TIMED_OUT | CANCELLED machine."""

    def test_ready_after_pending_polls(self, clock):
        provider = ScriptedProvider(clock, [ProviderStatus.PENDING, ProviderStatus.PENDING, ProviderStatus.READY])
        result = ReadinessWaiter(provider, clock=clock).await_ready("cert-1", poll_interval=0.001, timeout=100)

        assert result.state == ReadinessState.READY
        assert result.polls == 3
        assert result.elapsed == 30.0

    def test_times_out(self, clock):
        """Test TIMED_OUT is reported once the deadline has passed."""
        provider = ScriptedProvider(clock, [])
        result = ReadinessWaiter(provider, clock=clock).await_ready("cert-1", poll_interval=0.001, timeout=45)

        assert result.state == ReadinessState.TIMED_OUT
        assert result.polls == 5
        assert result.state.terminal

    def test_transient_poll_error_keeps_waiting(self, clock):
        provider = ScriptedProvider(clock, [TransientProviderError("throttled"), ProviderStatus.READY])
        result = ReadinessWaiter(provider, clock=clock).await_ready("cert-1", poll_interval=0.001, timeout=100)

        assert result.state == ReadinessState.READY
        assert result.polls == 2

    def test_failed_status_raises(self, clock):
        provider = ScriptedProvider(clock, [ProviderStatus.PENDING, ProviderStatus.FAILED])
        with pytest.raises(FatalProviderError, match="cert-1"):
            ReadinessWaiter(provider, clock=clock).await_ready("cert-1", poll_interval=0.001, timeout=100)

    def test_cancelled_before_first_poll(self, clock):
        cancel = CancellationToken()
        cancel.cancel()
        provider = ScriptedProvider(clock, [ProviderStatus.READY])
        result = ReadinessWaiter(provider, clock=clock).await_ready(
            "cert-1", poll_interval=0.001, timeout=100, cancel=cancel
        )

        assert result.state == ReadinessState.CANCELLED
        assert provider.polls == 0

    def test_cancellation_interrupts_wait(self):
        """Test a cancel during a long poll interval returns promptly."""
        cancel = CancellationToken()
        provider = ScriptedProvider(FakeClock(), [], step=0.0)
        timer = threading.Timer(0.05, cancel.cancel)
        timer.start()
        try:
            result = ReadinessWaiter(provider).await_ready("cert-1", poll_interval=60, timeout=600, cancel=cancel)
        finally:
            timer.cancel()

        assert result.state == ReadinessState.CANCELLED
        assert result.elapsed < 5
        assert provider.polls == 1

    def test_invalid_poll_interval(self, clock):
        with pytest.raises(ValueError):
            ReadinessWaiter(ScriptedProvider(clock, []), clock=clock).await_ready("x", poll_interval=0, timeout=1)
