# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/bootstrap/pipelines.py
from __future__ import annotations

from typing import Callable, Dict, List, Sequence

from hostforge.config.models import HostforgeConfig
from hostforge.deploy.models import (
    APPLICATION,
    CI,
    MONITORING,
    Pipeline,
    ProvisioningStep,
    ValidationProbe,
)
from hostforge.errors import ConfigurationError
from . import recipes

PipelineFactory = Callable[[HostforgeConfig], Pipeline]
ProbeFactory = Callable[[HostforgeConfig], List[ValidationProbe]]

# Role registries. Extra roles register their own factories.
_PIPELINES: Dict[str, PipelineFactory] = {}
_PROBES: Dict[str, ProbeFactory] = {}


def register(role: str):
    """Decorator to register a pipeline factory for a role."""
    def _wrap(fn: PipelineFactory):
        _PIPELINES[role] = fn
        return fn
    return _wrap


def register_probes(role: str):
    """Decorator to register the validation probes for a role."""
    def _wrap(fn: ProbeFactory):
        _PROBES[role] = fn
        return fn
    return _wrap


def build_pipelines(config: HostforgeConfig, roles: Sequence[str] | None = None) -> Dict[str, Pipeline]:
    """
    One Pipeline per role. A role without a registered pipeline is a
    configuration error.
    """
    roles = list(roles or config.roles)
    missing = [r for r in roles if r not in _PIPELINES]
    if missing:
        raise ConfigurationError(f"No pipeline defined for roles: {', '.join(missing)}")
    return {r: _PIPELINES[r](config) for r in roles}


def build_probes(config: HostforgeConfig, roles: Sequence[str] | None = None) -> Dict[str, List[ValidationProbe]]:
    roles = list(roles or config.roles)
    return {r: _PROBES[r](config) if r in _PROBES else [] for r in roles}


# ------------------ default roles ------------------

_docker = ProvisioningStep("docker", recipes.install_docker, "Install Docker engine")


@register(APPLICATION)
def application_pipeline(config: HostforgeConfig) -> Pipeline:
    return Pipeline.of(APPLICATION, [
        _docker,
        ProvisioningStep("application", recipes.deploy_application, "Build and run the application container"),
    ])


@register(CI)
def ci_pipeline(config: HostforgeConfig) -> Pipeline:
    return Pipeline.of(CI, [
        _docker,
        ProvisioningStep("java", recipes.install_java, "Install Java 17"),
        ProvisioningStep("jenkins", recipes.install_jenkins, "Install Jenkins"),
        ProvisioningStep("jenkins-jobs", recipes.configure_jenkins, "Wait for Jenkins"),
    ])


@register(MONITORING)
def monitoring_pipeline(config: HostforgeConfig) -> Pipeline:
    return Pipeline.of(MONITORING, [
        _docker,
        ProvisioningStep("monitoring", recipes.setup_monitoring, "Start Prometheus and Grafana"),
    ])


@register_probes(APPLICATION)
def application_probes(config: HostforgeConfig) -> List[ValidationProbe]:
    app = config.application
    return [ValidationProbe("Application", app.port, APPLICATION, app.status_path)]


@register_probes(CI)
def ci_probes(config: HostforgeConfig) -> List[ValidationProbe]:
    return [ValidationProbe("Jenkins", config.jenkins.port, CI, "/login")]


@register_probes(MONITORING)
def monitoring_probes(config: HostforgeConfig) -> List[ValidationProbe]:
    mon = config.monitoring
    return [
        ValidationProbe("Prometheus", mon.prometheus_port, MONITORING, "/"),
        ValidationProbe("Grafana", mon.grafana_port, MONITORING, "/"),
    ]
