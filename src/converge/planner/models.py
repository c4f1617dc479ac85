"""Pydantic models for plans."""

import hashlib
import json
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class PlanAction(str, Enum):
    """Action the executor takes for one node."""
    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DESTROY = "destroy"
    NO_OP = "no-op"


class AttributeChange(BaseModel):
    """One changed top-level attribute."""
    path: str = Field(..., description="Attribute name")
    before: Any = Field(None, description="Stored value, None when absent")
    after: Any = Field(None, description="Desired value, None when absent or not yet known")
    known: bool = Field(True, description="False when the desired value is only known after apply")
    forces_replacement: bool = Field(False, description="Changing this attribute requires recreation")


class PlanItem(BaseModel):
    """One node's planned action."""
    address: str
    type: str
    name: str
    index: Optional[int] = None
    provider: Optional[str] = None
    action: PlanAction
    reason: str = ""
    changes: List[AttributeChange] = Field(default_factory=list)
    rank: int = Field(0, description="Position in the ordered plan")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Desired attributes with lazy references")
    dependencies: List[str] = Field(default_factory=list, description="Declared dependencies, stored with the state")
    wait_for: List[str] = Field(default_factory=list, description="Nodes that must succeed before this one starts")
    dependents: List[str] = Field(default_factory=list, description="Planned nodes that depend on this one")
    deposed: List[str] = Field(default_factory=list, description="Leftover identifiers of replaced objects")
    ignore_changes: List[str] = Field(default_factory=list)
    prior_identifier: Optional[str] = None
    prior_version: Optional[int] = None
    create_before_destroy: bool = True
    await_ready: bool = False
    resume_readiness: bool = False
    readiness_poll_interval: float = 15.0
    readiness_timeout: float = 2700.0

    @property
    def executable(self) -> bool:
        return self.action != PlanAction.NO_OP

    def changed_attributes(self) -> List[str]:
        return [change.path for change in self.changes]


class Plan(BaseModel):
    """Ordered list of plan items for one run."""
    operation: str = Field("apply", description="'apply' or 'destroy'")
    items: List[PlanItem] = Field(default_factory=list)
    plan_id: str = ""

    def model_post_init(self, __context: Any) -> None:
        if not self.plan_id:
            self.plan_id = self.fingerprint()

    def fingerprint(self) -> str:
        """Content hash: identical inputs always produce the same plan id."""
        payload = json.dumps(
            {"operation": self.operation, "items": [item.model_dump(mode="json") for item in self.items]},
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]

    def get(self, address: str) -> Optional[PlanItem]:
        for item in self.items:
            if item.address == address:
                return item
        return None

    def actions(self) -> Dict[str, PlanAction]:
        return {item.address: item.action for item in self.items}

    def summary(self) -> Dict[str, int]:
        counts = {action.value: 0 for action in PlanAction}
        for item in self.items:
            counts[PlanAction(item.action).value] += 1
        return counts

    @property
    def has_changes(self) -> bool:
        return any(item.executable for item in self.items)
