# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/observers/logger.py
from __future__ import annotations

import logging

from .events import BaseEvent, HostUnreachable, StepFailed

# Events that mean a host is out of the run; everything else is detail.
_WARN_EVENTS = (HostUnreachable, StepFailed)


class LoggerObserver:
    """Mirrors lifecycle events into the run log, one line per event."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        fields = {k: v for k, v in event.dict().items() if k not in ("ts", "run_id")}
        address = fields.pop("address", None)
        prefix = f"[{address}] " if address else ""
        msg = ", ".join(f"{k}={v}" for k, v in fields.items() if v is not None)

        level = logging.WARNING if isinstance(event, _WARN_EVENTS) else logging.DEBUG
        self.logger.log(level, "%s[EVENT] %s: %s", prefix, type(event).__name__, msg)
