"""System prompts for the reporting agent."""

from .report_prompt import REPORT_PROMPT, build_system_prompt

__all__ = ["REPORT_PROMPT", "build_system_prompt"]
