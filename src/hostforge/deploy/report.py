# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/deploy/report.py
from __future__ import annotations

from typing import List

import typer

from ..config.models import HostforgeConfig
from .models import MONITORING
from .orchestrator import RunReport

FACT_LABELS = {
    "jenkins_admin_password": "Jenkins initial admin password",
}


def render_report(report: RunReport, config: HostforgeConfig) -> List[str]:
    """Plain-text summary lines: endpoints, step outcome and probe results per host."""
    lines: List[str] = []
    lines.append("=== Setup summary ===")

    for result in report.results:
        host = result.host
        status = "OK" if result.ok else "FAILED"
        lines.append("")
        lines.append(f"[{host.role}] {host.address}  {status}")
        done = ", ".join(result.steps_completed) or "-"
        lines.append(f"  steps completed : {done}")
        if result.failure is not None:
            lines.append(f"  failed step     : {result.failure.step_name} ({result.failure.cause})")

        for probe in report.probes_for(host):
            mark = "PASS" if probe.ok else "FAIL"
            lines.append(f"  {mark}  {probe.probe.name:<12} http://{host.address}:{probe.probe.port}")
            if host.role == MONITORING and probe.probe.port == config.monitoring.grafana_port:
                lines.append(f"        login admin/{config.monitoring.grafana_admin_password}")
            if not probe.ok and probe.detail:
                lines.append(f"        {probe.detail}")

        for key, value in sorted(result.facts.items()):
            lines.append(f"  {FACT_LABELS.get(key, key)}: {value}")

    lines.append("")
    if report.interrupted:
        lines.append("Run was interrupted; unfinished steps are listed as failed.")
    lines.append(report.summary())
    return lines


def echo_report(report: RunReport, config: HostforgeConfig) -> None:
    for line in render_report(report, config):
        if line.startswith("  PASS"):
            typer.secho(line, fg=typer.colors.GREEN)
        elif line.startswith("  FAIL") or line.endswith("FAILED"):
            typer.secho(line, fg=typer.colors.RED)
        elif line.startswith("==="):
            typer.secho(line, bold=True)
        else:
            typer.echo(line)

    for result in report.failures:
        typer.secho(
            f"ERROR: {result.host.role} host {result.host.address} failed at step "
            f"'{result.failure.step_name}': {result.failure.cause}",
            fg=typer.colors.RED,
            err=True,
        )
