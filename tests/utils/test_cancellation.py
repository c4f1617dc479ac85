"""Tests for the run-wide cancellation token."""

import threading
from converge.utils.cancellation import CancellationToken


class TestCancellationToken:
    def test_first_reason_wins(self):
        token = CancellationToken()
        token.cancel("run timeout")
        token.cancel("operator abort")

        assert token.cancelled
        assert token.reason == "run timeout"

    def test_callbacks(self):
        token = CancellationToken()
        calls = []
        token.add_callback(lambda: calls.append("a"))
        removed = lambda: calls.append("b")
        token.add_callback(removed)
        token.remove_callback(removed)

        token.cancel()
        token.add_callback(lambda: calls.append("late"))

        assert calls == ["a", "late"]

    def test_wait_wakes_on_cancel(self):
        token = CancellationToken()
        threading.Timer(0.05, token.cancel).start()
        assert token.wait(5) is True

    def test_wait_times_out(self):
        assert CancellationToken().wait(0.01) is False
