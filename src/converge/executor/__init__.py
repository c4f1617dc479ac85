"""Plan execution - bounded-concurrency scheduler, retries and run reports."""

from .executor import Executor
from .report import ErrorKind, ExecutionOutcome, ExecutionRecord, RunReport

__all__ = ["Executor", "ErrorKind", "ExecutionOutcome", "ExecutionRecord", "RunReport"]
