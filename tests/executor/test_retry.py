"""Tests for the transient-error retry policy."""

import pytest
from converge.config.models import RetryConfig
from converge.executor.retry import call_with_retry
from converge.utils.cancellation import CancellationToken
from converge.utils.errors import FatalProviderError, TransientProviderError


class Flaky:
    """Callable failing a fixed number of times before returning."""

    def __init__(self, failures, error=TransientProviderError):
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error(f"failure {self.calls}")
        return "done"


@pytest.fixture
def config():
    return RetryConfig(max_attempts=4, backoff_multiplier=1.0, backoff_min=1.0, backoff_max=8.0)


class TestCallWithRetry:
    """Test bounded exponential backoff."""

    def test_success_first_attempt(self, config):
        fn = Flaky(0)
        assert call_with_retry(fn, config, CancellationToken(), "op", sleep=lambda _: None) == "done"
        assert fn.calls == 1

    def test_transient_errors_retried(self, config):
        """Test transient failures under the budget are absorbed."""
        fn = Flaky(3)
        assert call_with_retry(fn, config, CancellationToken(), "op", sleep=lambda _: None) == "done"
        assert fn.calls == 4

    def test_budget_exhausted_reraises_last_error(self, config):
        fn = Flaky(10)
        with pytest.raises(TransientProviderError, match="failure 4"):
            call_with_retry(fn, config, CancellationToken(), "op", sleep=lambda _: None)
        assert fn.calls == 4

    def test_fatal_error_not_retried(self, config):
        """Test fatal errors propagate after one attempt."""
        fn = Flaky(1, error=FatalProviderError)
        with pytest.raises(FatalProviderError):
            call_with_retry(fn, config, CancellationToken(), "op", sleep=lambda _: None)
        assert fn.calls == 1

    def test_backoff_grows_and_is_capped(self):
        """Test waits double between attempts and never exceed backoff_max."""
        config = RetryConfig(max_attempts=6, backoff_multiplier=1.0, backoff_min=1.0, backoff_max=4.0)
        waits = []
        with pytest.raises(TransientProviderError):
            call_with_retry(Flaky(10), config, CancellationToken(), "op", sleep=waits.append)

        assert len(waits) == 5
        assert waits == sorted(waits)
        assert max(waits) == 4.0
        assert all(w >= 1.0 for w in waits)

    def test_cancellation_stops_retrying(self, config):
        """Test no further attempt is made once the run is cancelled."""
        cancel = CancellationToken()
        fn = Flaky(10)

        def sleep(_):
            cancel.cancel("stop")

        with pytest.raises(TransientProviderError):
            call_with_retry(fn, config, cancel, "op", sleep=sleep)
        assert fn.calls == 2
