# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/config/models.py

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from hostforge.deploy.models import DEFAULT_ROLES


class SSHSettings(BaseModel):
    user: str = "ubuntu"
    key_path: Path = Path("team-key.pem")
    port: int = 22
    command_timeout: float = 600.0       # per remote command, seconds


class ReadinessPolicy(BaseModel):
    """30 attempts x 10s = 5 minute ceiling."""
    max_attempts: int = Field(30, ge=1)
    interval_seconds: float = Field(10.0, ge=0)
    connect_timeout_seconds: float = Field(10.0, gt=0)


class TerraformSettings(BaseModel):
    binary: str = "terraform"
    output_name: str = "instance_public_ips"
    working_dir: Path = Path(".")
    plan_file: str = "tfplan"


class ApplicationSettings(BaseModel):
    repo_url: str = "https://github.com/adarsh-raj27/online-book-bazaar.git"
    checkout_dir: str = "online-book-bazaar"
    image: str = "book-bazaar"
    container: str = "book-bazaar-app"
    port: int = 8000
    container_port: int = 8000
    status_path: str = "/status"
    base_image: str = "node:16-alpine"


class JenkinsSettings(BaseModel):
    port: int = 8080
    java_package: str = "openjdk-17-jdk"
    ready_attempts: int = 30
    ready_interval_seconds: int = 10


class MonitoringSettings(BaseModel):
    prometheus_port: int = 9090
    grafana_port: int = 3000
    grafana_admin_password: str = "admin123"
    scrape_interval: str = "15s"
    remote_dir: str = "/home/ubuntu"


class HostforgeConfig(BaseModel):
    roles: List[str] = Field(default_factory=lambda: list(DEFAULT_ROLES))
    ssh: SSHSettings = Field(default_factory=SSHSettings)
    readiness: ReadinessPolicy = Field(default_factory=ReadinessPolicy)
    terraform: TerraformSettings = Field(default_factory=TerraformSettings)
    application: ApplicationSettings = Field(default_factory=ApplicationSettings)
    jenkins: JenkinsSettings = Field(default_factory=JenkinsSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    settle_seconds: float = 30.0         # pause between provisioning and validation
    probe_timeout: float = 5.0
    step_timeout: Optional[float] = None
    max_workers: Optional[int] = None
    log_dir: Optional[Path] = None       # defaults to ~/.hostforge/logs

    @field_validator("roles")
    @classmethod
    def _roles_unique(cls, roles: List[str]) -> List[str]:
        if not roles:
            raise ValueError("at least one role is required")
        if len(set(roles)) != len(roles):
            raise ValueError(f"roles must be unique: {roles}")
        return roles
