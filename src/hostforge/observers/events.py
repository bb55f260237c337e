# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single provisioning run

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
    }


# ---------------------------------------------------------------------
# Run lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class HostsResolved(BaseEvent):
    source: str                 # "explicit" | "terraform"
    hosts: Dict[str, str]       # role -> address

@dataclass(frozen=True)
class RunSummary(BaseEvent):
    ok: int
    failed: int
    probes_ok: int
    probes_failed: int


# ---------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ReadinessAttempt(BaseEvent):
    address: str
    attempt: int
    max_attempts: int
    error: Optional[str] = None

@dataclass(frozen=True)
class HostReady(BaseEvent):
    address: str
    attempts: int

@dataclass(frozen=True)
class HostUnreachable(BaseEvent):
    address: str
    attempts: int


# ---------------------------------------------------------------------
# Step lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class StepStarted(BaseEvent):
    address: str
    role: str
    step: str

@dataclass(frozen=True)
class StepSucceeded(BaseEvent):
    address: str
    step: str
    duration_ms: int

@dataclass(frozen=True)
class StepFailed(BaseEvent):
    address: str
    step: str
    cause: str

@dataclass(frozen=True)
class PipelineFinished(BaseEvent):
    address: str
    role: str
    steps_completed: List[str]
    ok: bool


# ---------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ProbeChecked(BaseEvent):
    address: str
    probe: str
    url: str
    ok: bool
    detail: str = ""
