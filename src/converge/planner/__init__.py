"""Planning module - read-only diff of declared against stored state."""

from .models import AttributeChange, Plan, PlanAction, PlanItem
from .planner import Planner

__all__ = ["AttributeChange", "Plan", "PlanAction", "PlanItem", "Planner"]
