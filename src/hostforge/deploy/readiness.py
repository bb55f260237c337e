# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/deploy/readiness.py
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from ..config.models import ReadinessPolicy
from ..errors import ChannelError, Interrupted, ReadinessTimeout
from ..observers.dispatcher import EventBus
from ..observers.events import HostReady, HostUnreachable, ReadinessAttempt, new_ctx
from ..utils.ssh_runner import RemoteChannel
from .models import Host, ReadyState

log = logging.getLogger("hostforge")

PROBE_COMMAND = "echo 'Instance ready'"


class ReadinessGate:
    """
    Polls a freshly booted host until it accepts remote commands.

    Each attempt runs a trivial command with a short connect timeout; between
    failed attempts the gate sleeps ``interval_seconds``. The sleep function
    is injectable so tests do not wait.
    """

    def __init__(
        self,
        channel: RemoteChannel,
        policy: Optional[ReadinessPolicy] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        bus: Optional[EventBus] = None,
        cancel: Optional[threading.Event] = None,
        run_id: Optional[str] = None,
    ):
        self.channel = channel
        self.policy = policy or ReadinessPolicy()
        self.sleep = sleep
        self.cancel = cancel or threading.Event()
        self.bus = bus or EventBus()
        self.run_id = run_id

    def _attempt(self, host: Host) -> Optional[str]:
        """Returns None on success, else a short reason."""
        timeout = self.policy.connect_timeout_seconds
        try:
            res = self.channel.execute(
                host, PROBE_COMMAND, timeout=timeout, connect_timeout=timeout
            )
        except ChannelError as e:
            return str(e)
        if not res.ok:
            return f"exit code {res.exit_code}"
        return None

    def await_ready(self, host: Host) -> int:
        """
        Block until ``host`` answers or the attempt budget is spent.

        Returns the number of attempts it took. Raises ReadinessTimeout
        after ``max_attempts`` failures; the host is then UNREACHABLE.
        """
        max_attempts = self.policy.max_attempts
        host.ready_state = ReadyState.PROBING
        log.info("[%s] Waiting for instance %s to be ready...", host.role, host.address)

        for attempt in range(1, max_attempts + 1):
            if self.cancel.is_set():
                raise Interrupted(f"readiness wait for {host.address} cancelled")
            error = self._attempt(host)
            self.bus.emit(
                ReadinessAttempt(
                    address=host.address,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    error=error,
                    **new_ctx(self.run_id),
                )
            )
            if error is None:
                host.ready_state = ReadyState.READY
                log.info("[%s] Instance %s is ready (attempt %d)", host.role, host.address, attempt)
                self.bus.emit(HostReady(address=host.address, attempts=attempt, **new_ctx(self.run_id)))
                return attempt

            log.info(
                "[%s] Attempt %d/%d: instance %s not ready yet (%s)",
                host.role, attempt, max_attempts, host.address, error,
            )
            if attempt < max_attempts:
                self.sleep(self.policy.interval_seconds)

        host.ready_state = ReadyState.UNREACHABLE
        log.error(
            "[%s] Instance %s did not become ready within %d attempts",
            host.role, host.address, max_attempts,
        )
        self.bus.emit(HostUnreachable(address=host.address, attempts=max_attempts, **new_ctx(self.run_id)))
        raise ReadinessTimeout(host.address, max_attempts)
