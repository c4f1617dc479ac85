"""Readiness waiter for asynchronously completing resources."""

from .readiness import ReadinessResult, ReadinessState, ReadinessWaiter

__all__ = ["ReadinessResult", "ReadinessState", "ReadinessWaiter"]
