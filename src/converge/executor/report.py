"""Pydantic models for execution records and run reports."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from ..planner.models import PlanAction


class ExecutionOutcome(str, Enum):
    """Terminal outcome of one plan item."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    NO_OP = "no-op"


class ErrorKind(str, Enum):
    """Why a node failed or was skipped."""
    PROVIDER_FATAL = "provider_fatal"
    PROVIDER_TRANSIENT = "provider_transient"
    STATE_CONFLICT = "state_conflict"
    READINESS_TIMEOUT = "readiness_timeout"
    READINESS_CANCELLED = "readiness_cancelled"
    READINESS_FAILED = "readiness_failed"
    CANCELLED = "cancelled"
    DEPENDENCY_FAILED = "dependency_failed"
    INTERNAL = "internal"


class ExecutionRecord(BaseModel):
    """Result of executing one plan item."""
    address: str
    action: PlanAction
    outcome: Optional[ExecutionOutcome] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    identifier: Optional[str] = None
    outputs: Dict[str, Any] = Field(default_factory=dict)
    attempts: int = Field(0, ge=0, description="Provider calls made, including retries")
    notes: List[str] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def duration(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def ok(self) -> bool:
        return self.outcome in (ExecutionOutcome.SUCCEEDED, ExecutionOutcome.NO_OP)


class RunReport(BaseModel):
    """Per-node outcomes of one apply or destroy run."""
    run_id: str
    plan_id: str
    operation: str = "apply"
    started_at: datetime
    finished_at: Optional[datetime] = None
    records: List[ExecutionRecord] = Field(default_factory=list)
    cancelled: bool = False
    cancel_reason: Optional[str] = None

    def get(self, address: str) -> Optional[ExecutionRecord]:
        for record in self.records:
            if record.address == address:
                return record
        return None

    def outcome(self, address: str) -> Optional[ExecutionOutcome]:
        record = self.get(address)
        return record.outcome if record else None

    def outcome_counts(self) -> Dict[str, int]:
        counts = {outcome.value: 0 for outcome in ExecutionOutcome}
        for record in self.records:
            if record.outcome is not None:
                counts[ExecutionOutcome(record.outcome).value] += 1
        return counts

    @property
    def failed(self) -> List[ExecutionRecord]:
        return [r for r in self.records if r.outcome == ExecutionOutcome.FAILED]

    @property
    def skipped(self) -> List[ExecutionRecord]:
        return [r for r in self.records if r.outcome == ExecutionOutcome.SKIPPED]

    @property
    def state_conflicts(self) -> List[ExecutionRecord]:
        return [r for r in self.records if r.error_kind == ErrorKind.STATE_CONFLICT]

    @property
    def succeeded(self) -> bool:
        """A run fails if any node failed or was skipped, even when others succeeded."""
        return not self.failed and not self.skipped

    @property
    def duration(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()
