"""Presentation layer - human-friendly formatting."""

from .formatter import format_plan, format_report, format_state

__all__ = ["format_plan", "format_report", "format_state"]
