# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/deploy/orchestrator.py
from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from ..config.models import HostforgeConfig
from ..errors import ConfigurationError, Interrupted, ReadinessTimeout, StepError
from ..observers.dispatcher import EventBus
from ..observers.events import RunSummary, new_ctx
from ..utils.ssh_runner import RemoteChannel
from .models import Host, Pipeline, PipelineResult, ProbeResult, ValidationProbe
from .readiness import ReadinessGate
from .runner import INTERRUPTED, StepRunner
from .validator import Validator

log = logging.getLogger("hostforge")

READINESS_STEP = "readiness"


@dataclass
class RunReport:
    results: List[PipelineResult] = field(default_factory=list)
    probes: List[ProbeResult] = field(default_factory=list)
    interrupted: bool = False

    @property
    def failures(self) -> List[PipelineResult]:
        return [r for r in self.results if not r.ok]

    @property
    def exit_code(self) -> int:
        """Non-zero when any host pipeline did not complete. Probes never count."""
        return 1 if self.failures or self.interrupted else 0

    def probes_for(self, host: Host) -> List[ProbeResult]:
        return [p for p in self.probes if p.host.address == host.address]

    def summary(self) -> str:
        ok = sum(1 for r in self.results if r.ok)
        probes_ok = sum(1 for p in self.probes if p.ok)
        return (
            f"HOSTS_OK={ok} HOSTS_FAILED={len(self.results) - ok} "
            f"PROBES_OK={probes_ok} PROBES_FAILED={len(self.probes) - probes_ok}"
        )


class Orchestrator:
    """
    Readiness -> pipeline per host (hosts in parallel), then validation.

    Failures stay local to their host: an unreachable host or a failed step
    never stops the other hosts. Only configuration problems, raised before
    any host work starts, abort the whole run.
    """

    def __init__(
        self,
        config: HostforgeConfig,
        channel: RemoteChannel,
        pipelines: Dict[str, Pipeline],
        probes: Optional[Dict[str, List[ValidationProbe]]] = None,
        *,
        validator: Optional[Validator] = None,
        bus: Optional[EventBus] = None,
        sleep: Optional[Callable[[float], None]] = None,
        run_id: Optional[str] = None,
    ):
        self.config = config
        self.channel = channel
        self.pipelines = pipelines
        self.probes = probes or {}
        self.bus = bus or EventBus()
        self.run_id = run_id or str(uuid.uuid4())
        self.validator = validator or Validator(
            timeout=config.probe_timeout, bus=self.bus, run_id=self.run_id
        )
        self.cancel = threading.Event()
        # cancel.wait returns early on interrupt; tests inject a no-op
        self.sleep = sleep or self.cancel.wait

    def _check_roles(self, hosts: Sequence[Host]) -> None:
        unmapped = sorted({h.role for h in hosts} - set(self.pipelines))
        if unmapped:
            raise ConfigurationError(f"No pipeline defined for roles: {', '.join(unmapped)}")

    def _provision(self, host: Host, gate: ReadinessGate, runner: StepRunner, peers: Dict[str, str]) -> PipelineResult:
        try:
            gate.await_ready(host)
        except ReadinessTimeout as e:
            return PipelineResult(host=host, failure=StepError(READINESS_STEP, str(e)))
        except Interrupted:
            return PipelineResult(host=host, failure=StepError(READINESS_STEP, INTERRUPTED))
        return runner.run_pipeline(host, self.pipelines[host.role], peers=peers)

    def provision(self, hosts: Sequence[Host]) -> RunReport:
        """Run readiness + pipelines for every host concurrently."""
        self._check_roles(hosts)
        report = RunReport()
        peers = {h.role: h.address for h in hosts}

        gate = ReadinessGate(
            self.channel,
            self.config.readiness,
            sleep=self.sleep,
            bus=self.bus,
            cancel=self.cancel,
            run_id=self.run_id,
        )
        runner = StepRunner(
            self.channel,
            self.config,
            bus=self.bus,
            cancel=self.cancel,
            run_id=self.run_id,
        )

        workers = self.config.max_workers or max(1, len(hosts))
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="host")
        futures = [pool.submit(self._provision, h, gate, runner, peers) for h in hosts]
        try:
            wait(futures)
        except KeyboardInterrupt:
            log.warning("Interrupted: letting in-flight steps finish, skipping the rest")
            self.cancel.set()
            report.interrupted = True
        finally:
            pool.shutdown(wait=True)

        for host, fut in zip(hosts, futures):
            try:
                result = fut.result()
            except Exception as e:  # noqa: BLE001 - a broken worker fails only its own host
                log.error("[%s] %s: provisioning crashed: %s", host.role, host.address, e, exc_info=True)
                result = PipelineResult(host=host, failure=StepError("internal", str(e)))
            if not result.ok:
                log.error(
                    "[%s] %s: pipeline stopped at '%s': %s",
                    host.role, host.address, result.failure.step_name, result.failure.cause,
                )
            report.results.append(result)
        return report

    def validate(self, report: RunReport) -> None:
        """Probe every host's services. Hosts that did not finish are reported failed, unprobed."""
        if report.interrupted:
            settle = 0
        else:
            settle = self.config.settle_seconds
        pending = list(report.results)
        try:
            if settle and any(r.ok for r in report.results):
                log.info("Waiting %ss for services to settle before validation...", settle)
                self.sleep(settle)

            while pending:
                result = pending[0]
                host = result.host
                probes = self.probes.get(host.role, [])
                log.info("Validating setup on %s (%s)...", host.address, host.role)
                if result.ok and not report.interrupted:
                    report.probes.extend(self.validator.validate(host, probes))
                else:
                    reason = "pipeline incomplete" if not result.ok else INTERRUPTED
                    report.probes.extend(self.validator.skip(host, probes, reason))
                pending.pop(0)
        except KeyboardInterrupt:
            log.warning("Interrupted: skipping validation of %d host(s)", len(pending))
            self.cancel.set()
            report.interrupted = True
            for result in pending:
                probes = self.probes.get(result.host.role, [])
                report.probes.extend(self.validator.skip(result.host, probes, INTERRUPTED))

    def run(self, hosts: Sequence[Host]) -> RunReport:
        t0 = time.monotonic()
        try:
            report = self.provision(hosts)
            self.validate(report)
        finally:
            self.channel.close()

        ok = sum(1 for r in report.results if r.ok)
        probes_ok = sum(1 for p in report.probes if p.ok)
        self.bus.emit(
            RunSummary(
                ok=ok,
                failed=len(report.results) - ok,
                probes_ok=probes_ok,
                probes_failed=len(report.probes) - probes_ok,
                **new_ctx(self.run_id),
            )
        )
        log.info("Run finished in %.1fs: %s", time.monotonic() - t0, report.summary())
        return report
