"""Step results and the job context exposed to expressions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class StepStatus(Enum):
    """Outcome or conclusion of a step."""

    SUCCESS = 0
    FAILURE = 1
    SKIPPED = 2

    def __str__(self) -> str:
        return self.name.lower()


def parse_step_status(text: str) -> StepStatus:
    """Return the status whose textual form is ``text``."""
    for status in StepStatus:
        if str(status) == text:
            return status
    raise ValueError(f"invalid step status {text!r}")


@dataclass
class StepResult:
    """Outputs and status of one executed step."""

    outputs: dict[str, str] = field(default_factory=dict)
    conclusion: StepStatus = StepStatus.SUCCESS
    outcome: StepStatus = StepStatus.SUCCESS


@dataclass
class ContainerInfo:
    """Identity of the job container."""

    id: str = ""
    network: str = ""


@dataclass
class ServiceInfo:
    """Identity of a service container."""

    id: str = ""


@dataclass
class JobContext:
    """The ``job`` context of a running job."""

    status: str = ""
    container: ContainerInfo = field(default_factory=ContainerInfo)
    services: dict[str, ServiceInfo] = field(default_factory=dict)