"""AI Agents package."""

from treasury.agents.advisor import (
    ERROR_TEXT,
    NO_ANSWER_TEXT,
    TreasuryAdvisor,
    build_prompt,
    build_system_instruction,
)

__all__ = [
    "ERROR_TEXT",
    "NO_ANSWER_TEXT",
    "TreasuryAdvisor",
    "build_prompt",
    "build_system_instruction",
]
