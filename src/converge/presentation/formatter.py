"""Human-friendly output formatter - converts plans and reports to readable text."""

import json
import os
from typing import Any, Dict, List, Optional
from ..executor.report import ExecutionOutcome, RunReport
from ..model.expressions import UNKNOWN
from ..model.models import Ref, SplatRef, Template
from ..planner.models import AttributeChange, Plan, PlanAction
from ..state.models import StoredState

ACTION_SYMBOLS = {
    PlanAction.CREATE: "+",
    PlanAction.UPDATE: "~",
    PlanAction.REPLACE: "-/+",
    PlanAction.DESTROY: "-",
    PlanAction.NO_OP: " ",
}

OUTCOME_LABELS = {
    ExecutionOutcome.SUCCEEDED: "OK",
    ExecutionOutcome.FAILED: "FAILED",
    ExecutionOutcome.SKIPPED: "SKIPPED",
    ExecutionOutcome.NO_OP: "no-op",
}


def _use_ascii(ascii_mode: Optional[bool] = None) -> bool:
    """Resolve whether to use ASCII output (checked at format time)."""
    if ascii_mode is not None:
        return bool(ascii_mode)
    return os.environ.get("CONVERGE_ASCII", "").lower() in ("1", "true", "yes")


def _box(title: str, width: int = 65, ascii_mode: bool = False) -> List[str]:
    """Return box-drawing header lines."""
    b = {"tl": "+", "tr": "+", "bl": "+", "br": "+", "h": "-", "v": "|"} if ascii_mode else {
        "tl": "┌", "tr": "┐", "bl": "└", "br": "┘", "h": "─", "v": "│"
    }
    h = b["h"] * (width - 2)
    return [
        b["tl"] + h + b["tr"],
        f"{b['v']} {title:<{width - 4}} {b['v']}",
        b["bl"] + h + b["br"],
        "",
    ]


def _section(title: str, width: int = 65) -> List[str]:
    """Return section divider."""
    h = "-" * width
    return [h, title.center(width), h]


def _render_value(value: Any) -> str:
    if value is UNKNOWN:
        return "(known after apply)"
    if isinstance(value, (Ref, SplatRef)):
        return f"${{{value.expression}}}"
    if isinstance(value, Template):
        return value.text
    if isinstance(value, str):
        return json.dumps(value)
    return json.dumps(value, sort_keys=True, default=str)


def _format_change(change: AttributeChange, action: PlanAction) -> str:
    after = _render_value(change.after) if change.known else "(known after apply)"
    suffix = "  # forces replacement" if change.forces_replacement else ""
    if action == PlanAction.CREATE or change.before is None:
        return f"      {change.path} = {after}{suffix}"
    return f"      {change.path}: {_render_value(change.before)} -> {after}{suffix}"


def format_plan(plan: Plan, show_no_op: bool = False, ascii_mode: Optional[bool] = None) -> str:
    """
    Format a plan as human-readable text.

    Args:
        plan: Plan to render
        show_no_op: Include items with nothing to do
        ascii_mode: Force ASCII box drawing (default from CONVERGE_ASCII)

    Returns:
        Multi-line string
    """
    ascii_mode = _use_ascii(ascii_mode)
    lines = _box(f"converge {plan.operation} plan {plan.plan_id}", ascii_mode=ascii_mode)

    if not plan.has_changes:
        lines.append("No changes. Declared resources match the recorded state.")
        return "\n".join(lines)

    for item in plan.items:
        action = PlanAction(item.action)
        if action == PlanAction.NO_OP and not show_no_op:
            continue
        header = f"  {ACTION_SYMBOLS[action]} {item.address}"
        if action != PlanAction.NO_OP:
            header += f"  ({action.value}: {item.reason})" if item.reason else f"  ({action.value})"
        lines.append(header)
        if action in (PlanAction.CREATE, PlanAction.UPDATE, PlanAction.REPLACE):
            for change in item.changes:
                lines.append(_format_change(change, action))
        if action == PlanAction.REPLACE:
            order = "create before destroy" if item.create_before_destroy else "destroy before create"
            lines.append(f"      # {order}")
        if item.resume_readiness:
            lines.append("      # waits again for readiness")

    lines.append("")
    lines.extend(_section("Summary"))
    lines.append(_summary_line(plan.summary()))
    return "\n".join(lines)


def _summary_line(summary: Dict[str, int]) -> str:
    return (
        f"Plan: {summary['create']} to create, {summary['update']} to update, "
        f"{summary['replace']} to replace, {summary['destroy']} to destroy."
    )


def format_report(report: RunReport, ascii_mode: Optional[bool] = None) -> str:
    """Format a run report listing every node with its outcome."""
    ascii_mode = _use_ascii(ascii_mode)
    lines = _box(f"converge {report.operation} run {report.run_id}", ascii_mode=ascii_mode)

    for record in report.records:
        outcome = ExecutionOutcome(record.outcome) if record.outcome else None
        label = OUTCOME_LABELS.get(outcome, "?")
        line = f"  [{label:<7}] {record.address} ({PlanAction(record.action).value})"
        if record.duration is not None and outcome != ExecutionOutcome.NO_OP:
            line += f" {record.duration:.2f}s"
        lines.append(line)
        if record.error:
            kind = f"{record.error_kind.value}: " if record.error_kind else ""
            lines.append(f"      {kind}{record.error}")
        for note in record.notes:
            lines.append(f"      # {note}")

    lines.append("")
    lines.extend(_section("Result"))
    counts = report.outcome_counts()
    lines.append(", ".join(f"{count} {outcome}" for outcome, count in counts.items()))
    if report.cancelled:
        lines.append(f"Run was cancelled: {report.cancel_reason}")
    lines.append("Run succeeded." if report.succeeded else "Run failed.")
    return "\n".join(lines)


def format_state(entries: List[StoredState], ascii_mode: Optional[bool] = None) -> str:
    """Format stored resources as a table."""
    ascii_mode = _use_ascii(ascii_mode)
    lines = _box(f"{len(entries)} stored resources", ascii_mode=ascii_mode)
    if not entries:
        lines.append("State is empty.")
        return "\n".join(lines)
    width = max(len(entry.address) for entry in entries)
    for entry in entries:
        flags = []
        if not entry.ready:
            flags.append("not ready")
        if entry.identifier is None:
            flags.append("missing")
        if entry.deposed:
            flags.append(f"{len(entry.deposed)} deposed")
        suffix = f"  ({', '.join(flags)})" if flags else ""
        lines.append(f"  {entry.address:<{width}}  {entry.identifier or '-'}  v{entry.version}{suffix}")
    return "\n".join(lines)
