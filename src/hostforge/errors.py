# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/errors.py
from __future__ import annotations


class HostforgeError(RuntimeError):
    """Base class for provisioning failures."""


class ConfigurationError(HostforgeError):
    """Missing or malformed input. Fatal to the whole run."""


class ResolutionError(HostforgeError):
    """The infrastructure-state provider returned nothing usable."""


class ChannelError(HostforgeError):
    """Connection or transfer failure on the remote-execution channel."""


class InfrastructureError(HostforgeError):
    """An infrastructure command (terraform init/plan/apply) failed."""


class ReadinessTimeout(HostforgeError, TimeoutError):
    """A host never accepted remote commands within its polling budget."""

    def __init__(self, address: str, attempts: int):
        super().__init__(f"{address} not reachable after {attempts} attempts")
        self.address = address
        self.attempts = attempts


class RemoteCommandError(HostforgeError):
    """A remote command exited with a non-zero status."""

    def __init__(self, command: str, exit_code: int, stderr: str = ""):
        super().__init__(f"exit code {exit_code}")
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


class StepTimeout(HostforgeError, TimeoutError):
    """A provisioning step ran past its deadline."""


class StepError(HostforgeError):
    """A provisioning step failed; the rest of that host's pipeline is skipped."""

    def __init__(self, step_name: str, cause: str):
        super().__init__(f"step '{step_name}' failed: {cause}")
        self.step_name = step_name
        self.cause = cause

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StepError):
            return NotImplemented
        return (self.step_name, self.cause) == (other.step_name, other.cause)

    def __hash__(self) -> int:
        return hash((self.step_name, self.cause))


class ProbeFailure(HostforgeError):
    """A validation probe did not get a healthy answer. Recorded, never fatal."""


class Interrupted(HostforgeError):
    """The operator cancelled the run."""
