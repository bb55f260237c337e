# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/deploy/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Tuple

from ..errors import ConfigurationError, StepError

if TYPE_CHECKING:
    from .runner import StepContext


APPLICATION = "application"
CI = "ci"
MONITORING = "monitoring"

DEFAULT_ROLES: Tuple[str, ...] = (APPLICATION, CI, MONITORING)


class ReadyState(str, Enum):
    UNKNOWN = "Unknown"
    PROBING = "Probing"
    READY = "Ready"
    UNREACHABLE = "Unreachable"


@dataclass
class Host:
    """
    One provisioned machine.

    ``address`` and ``role`` are fixed once the resolver creates the host;
    ``ready_state`` is only changed by the readiness gate.
    """
    address: str
    role: str
    ready_state: ReadyState = ReadyState.UNKNOWN

    def __post_init__(self):
        object.__setattr__(self, "_frozen", True)

    def __setattr__(self, name, value):
        if name in ("address", "role") and getattr(self, "_frozen", False):
            raise AttributeError(f"Host.{name} is immutable")
        super().__setattr__(name, value)


@dataclass(frozen=True)
class CommandResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class ProvisioningStep:
    name: str
    action: Callable[["StepContext"], None]
    description: str = ""


@dataclass(frozen=True)
class Pipeline:
    """Ordered steps bound to a role. Step names must be unique."""
    role: str
    steps: Tuple[ProvisioningStep, ...]

    def __post_init__(self):
        seen = set()
        for step in self.steps:
            if step.name in seen:
                raise ConfigurationError(
                    f"Pipeline '{self.role}' defines step '{step.name}' more than once"
                )
            seen.add(step.name)

    @classmethod
    def of(cls, role: str, steps: Iterable[ProvisioningStep]) -> "Pipeline":
        return cls(role=role, steps=tuple(steps))

    @property
    def step_names(self) -> List[str]:
        return [s.name for s in self.steps]


@dataclass(frozen=True)
class ValidationProbe:
    name: str
    port: int
    role: str
    path: str = "/"

    def url(self, address: str) -> str:
        path = self.path if self.path.startswith("/") else f"/{self.path}"
        return f"http://{address}:{self.port}{path}"


@dataclass(frozen=True)
class ProbeResult:
    host: Host
    probe: ValidationProbe
    ok: bool
    detail: str = ""


@dataclass
class PipelineResult:
    host: Host
    steps_completed: List[str] = field(default_factory=list)
    failure: Optional[StepError] = None
    facts: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.failure is None
