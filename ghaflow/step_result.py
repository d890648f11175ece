"""Outcome of a single workflow step."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class StepStatus(str, Enum):
    """Status of a step; behaves as its text form wherever a string is expected."""

    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"

    def __str__(self) -> str:
        return self.value


def parse_step_status(text: str) -> StepStatus:
    """Return the status named by ``text``; raise ValueError for unknown names."""
    try:
        return StepStatus(text)
    except ValueError:
        raise ValueError(f'invalid step status "{text}"') from None


@dataclass
class StepResult:
    """Outputs, conclusion and outcome recorded for a step."""

    outputs: dict[str, str] = field(default_factory=dict)
    conclusion: StepStatus = StepStatus.SUCCESS
    outcome: StepStatus = StepStatus.SUCCESS