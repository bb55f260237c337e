# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/deploy/runner.py
from __future__ import annotations

import itertools
import logging
import os
import shlex
import tempfile
import threading
import time
from pathlib import Path
from typing import Dict, Optional

from ..config.models import HostforgeConfig
from ..errors import RemoteCommandError, StepError, StepTimeout
from ..observers.dispatcher import EventBus
from ..observers.events import (
    PipelineFinished,
    StepFailed,
    StepStarted,
    StepSucceeded,
    new_ctx,
)
from ..utils.ssh_runner import RemoteChannel
from .models import CommandResult, Host, Pipeline, PipelineResult

log = logging.getLogger("hostforge")

INTERRUPTED = "interrupted"

_tmp_counter = itertools.count(1)


class StepContext:
    """
    What a step action gets to work with: the host, the remote channel,
    the run configuration and the addresses of the other roles.

    Commands run through ``bash -lc``; ``run`` raises RemoteCommandError on a
    non-zero exit unless ``check=False``.
    """

    def __init__(
        self,
        host: Host,
        channel: RemoteChannel,
        config: HostforgeConfig,
        *,
        peers: Optional[Dict[str, str]] = None,
        facts: Optional[Dict[str, str]] = None,
        deadline: Optional[float] = None,
    ):
        self.host = host
        self.channel = channel
        self.config = config
        self.peers = dict(peers or {})
        self.facts = facts if facts is not None else {}
        self.deadline = deadline

    def _timeout(self, requested: Optional[float]) -> Optional[float]:
        timeout = requested if requested is not None else self.config.ssh.command_timeout
        if self.deadline is None:
            return timeout
        remaining = self.deadline - time.monotonic()
        if remaining <= 0:
            raise StepTimeout("step deadline exceeded")
        return remaining if timeout is None else min(timeout, remaining)

    def run(
        self,
        cmd: str,
        *,
        sudo: bool = False,
        check: bool = True,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        wrapped = f"bash -lc {shlex.quote(cmd)}"
        if sudo:
            wrapped = f"sudo -H {wrapped}"
        res = self.channel.execute(self.host, wrapped, timeout=self._timeout(timeout))
        if check and not res.ok:
            log.debug("[%s] stderr: %s", self.host.address, res.stderr.strip())
            raise RemoteCommandError(cmd, res.exit_code, res.stderr)
        return res

    def script(self, body: str, *, sudo: bool = False, timeout: Optional[float] = None) -> CommandResult:
        """Run a multi-line shell script that stops at its first failing command."""
        return self.run("set -e\n" + body, sudo=sudo, timeout=timeout)

    def put_file(
        self,
        local_path: str | Path,
        remote_path: str,
        *,
        mode: int = 0o644,
        sudo: bool = False,
    ) -> None:
        """
        Upload to a temp path, then install into place so root-owned targets
        work too.
        """
        timeout = self._timeout(None)
        tmp_remote = f"/tmp/.hostforge_tmp_{os.getpid()}_{next(_tmp_counter)}"
        self.channel.transfer(self.host, local_path, tmp_remote, timeout=timeout)
        self.run(
            f"install -m {oct(mode)[2:]} {shlex.quote(tmp_remote)} {shlex.quote(remote_path)}"
            f" && rm -f {shlex.quote(tmp_remote)}",
            sudo=sudo,
        )

    def put_text(
        self,
        content: str,
        remote_path: str,
        *,
        mode: int = 0o644,
        sudo: bool = False,
    ) -> None:
        with tempfile.TemporaryDirectory(prefix="hostforge-") as tmp:
            local = Path(tmp) / Path(remote_path).name
            local.write_text(content)
            self.put_file(local, remote_path, mode=mode, sudo=sudo)

    def fact(self, key: str, value: str) -> None:
        """Surface a value (e.g. an initial password) in the final report."""
        self.facts[key] = value


class StepRunner:
    """
    Executes one role's pipeline against one host, strictly in order.

    The first failing step ends the pipeline: completed steps are recorded,
    later steps never run, and nothing is rolled back.
    """

    def __init__(
        self,
        channel: RemoteChannel,
        config: Optional[HostforgeConfig] = None,
        *,
        bus: Optional[EventBus] = None,
        cancel: Optional[threading.Event] = None,
        run_id: Optional[str] = None,
    ):
        self.channel = channel
        self.config = config or HostforgeConfig()
        self.bus = bus or EventBus()
        self.cancel = cancel or threading.Event()
        self.run_id = run_id

    def run_pipeline(
        self,
        host: Host,
        pipeline: Pipeline,
        *,
        peers: Optional[Dict[str, str]] = None,
    ) -> PipelineResult:
        result = PipelineResult(host=host)
        step_timeout = self.config.step_timeout

        for step in pipeline.steps:
            if self.cancel.is_set():
                result.failure = StepError(step.name, INTERRUPTED)
                log.warning("[%s] %s: step '%s' not started (run interrupted)", host.role, host.address, step.name)
                break

            deadline = time.monotonic() + step_timeout if step_timeout else None
            ctx = StepContext(
                host,
                self.channel,
                self.config,
                peers=peers,
                facts=result.facts,
                deadline=deadline,
            )
            log.info(
                "[%s] %s: running step '%s'%s",
                host.role, host.address, step.name,
                f" ({step.description})" if step.description else "",
            )
            self.bus.emit(StepStarted(address=host.address, role=host.role, step=step.name, **new_ctx(self.run_id)))

            t0 = time.monotonic()
            try:
                step.action(ctx)
            except Exception as exc:  # noqa: BLE001 - any step failure ends this host's pipeline
                cause = str(exc) or type(exc).__name__
                result.failure = StepError(step.name, cause)
                log.error(
                    "[%s] %s: step '%s' failed: %s",
                    host.role, host.address, step.name, cause,
                    exc_info=not isinstance(exc, (RemoteCommandError, StepTimeout)),
                )
                self.bus.emit(StepFailed(address=host.address, step=step.name, cause=cause, **new_ctx(self.run_id)))
                break

            duration_ms = int((time.monotonic() - t0) * 1000)
            result.steps_completed.append(step.name)
            log.info("[%s] %s: step '%s' completed in %dms", host.role, host.address, step.name, duration_ms)
            self.bus.emit(
                StepSucceeded(address=host.address, step=step.name, duration_ms=duration_ms, **new_ctx(self.run_id))
            )

        self.bus.emit(
            PipelineFinished(
                address=host.address,
                role=host.role,
                steps_completed=list(result.steps_completed),
                ok=result.ok,
                **new_ctx(self.run_id),
            )
        )
        return result
