# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/bootstrap/recipes.py
"""
Provisioning recipes run over SSH.

Every recipe is idempotent: running it against a host that is already in the
target state succeeds and leaves that state unchanged (existing containers
are stopped and removed before being started again, apt installs are no-ops,
rendered files are rewritten with the same content).
"""

from __future__ import annotations

import logging
import shlex
import textwrap

from hostforge.deploy.models import APPLICATION
from hostforge.deploy.runner import StepContext
from .template_renderer import TemplateRenderer

log = logging.getLogger("hostforge")

_renderer = TemplateRenderer()

JENKINS_ADMIN_PASSWORD = "/var/lib/jenkins/secrets/initialAdminPassword"


def _home(ctx: StepContext) -> str:
    user = ctx.config.ssh.user
    return "/root" if user == "root" else f"/home/{user}"


def _wait_http(url: str, attempts: int, interval: int) -> str:
    return textwrap.dedent(f"""\
        for i in $(seq 1 {attempts}); do
            if curl -sf -o /dev/null {shlex.quote(url)}; then
                exit 0
            fi
            sleep {interval}
        done
        exit 1
    """)


# ------------------ container runtime ------------------

def install_docker(ctx: StepContext) -> None:
    """
    - Docker apt repository + signing key
    - docker-ce, containerd and the compose plugin
    - login user in the docker group, service enabled
    """
    present = ctx.run("docker --version && docker compose version", check=False)
    if present.ok:
        log.info("[%s] Docker already installed on %s", ctx.host.role, ctx.host.address)
    else:
        ctx.script(textwrap.dedent("""\
            export DEBIAN_FRONTEND=noninteractive
            apt-get update
            apt-get install -y apt-transport-https ca-certificates curl gnupg lsb-release
            install -m 0755 -d /usr/share/keyrings
            curl -fsSL https://download.docker.com/linux/ubuntu/gpg | gpg --dearmor --yes -o /usr/share/keyrings/docker-archive-keyring.gpg
            echo "deb [arch=$(dpkg --print-architecture) signed-by=/usr/share/keyrings/docker-archive-keyring.gpg] https://download.docker.com/linux/ubuntu $(lsb_release -cs) stable" > /etc/apt/sources.list.d/docker.list
            apt-get update
            apt-get install -y docker-ce docker-ce-cli containerd.io docker-compose-plugin
        """), sudo=True)

    ctx.run(f"usermod -aG docker {shlex.quote(ctx.config.ssh.user)}", sudo=True)
    ctx.run("systemctl enable --now docker", sudo=True)


# ------------------ CI server ------------------

def install_java(ctx: StepContext) -> None:
    package = ctx.config.jenkins.java_package
    if ctx.run("java -version 2>&1 | grep -q 'version \"17'", check=False).ok:
        log.info("[%s] Java 17 already installed on %s", ctx.host.role, ctx.host.address)
        return
    ctx.script(textwrap.dedent(f"""\
        export DEBIAN_FRONTEND=noninteractive
        apt-get update
        apt-get install -y {shlex.quote(package)}
    """), sudo=True)
    ctx.run("java -version")


def install_jenkins(ctx: StepContext) -> None:
    """
    - Jenkins stable apt repository and package
    - systemd override pinning the HTTP port
    - service enabled and (re)started
    - initial admin password captured for the report, when already written
    """
    port = ctx.config.jenkins.port
    ctx.script(textwrap.dedent("""\
        export DEBIAN_FRONTEND=noninteractive
        install -m 0755 -d /usr/share/keyrings
        curl -fsSL https://pkg.jenkins.io/debian-stable/jenkins.io-2023.key -o /usr/share/keyrings/jenkins-keyring.asc
        echo "deb [signed-by=/usr/share/keyrings/jenkins-keyring.asc] https://pkg.jenkins.io/debian-stable binary/" > /etc/apt/sources.list.d/jenkins.list
        apt-get update
        apt-get install -y jenkins
    """), sudo=True)

    ctx.run("install -d -m 0755 /etc/systemd/system/jenkins.service.d", sudo=True)
    ctx.put_text(
        _renderer.render("jenkins-override.conf.j2", {"port": port}),
        "/etc/systemd/system/jenkins.service.d/override.conf",
        sudo=True,
    )
    ctx.script(textwrap.dedent("""\
        systemctl daemon-reload
        systemctl enable jenkins
        systemctl restart jenkins
    """), sudo=True)

    _capture_admin_password(ctx)


def configure_jenkins(ctx: StepContext) -> None:
    """
    Wait for Jenkins to answer locally; the service must be active at the end.
    """
    cfg = ctx.config.jenkins
    res = ctx.run(
        _wait_http(f"http://localhost:{cfg.port}/login", cfg.ready_attempts, cfg.ready_interval_seconds),
        check=False,
    )
    if res.ok:
        log.info("[%s] Jenkins is accessible on %s:%d", ctx.host.role, ctx.host.address, cfg.port)
    else:
        log.warning("[%s] Jenkins did not answer on port %d yet", ctx.host.role, cfg.port)

    ctx.run("systemctl is-active --quiet jenkins", sudo=True)
    _capture_admin_password(ctx)


def _capture_admin_password(ctx: StepContext) -> None:
    res = ctx.run(f"cat {JENKINS_ADMIN_PASSWORD}", sudo=True, check=False)
    if res.ok and res.stdout.strip():
        ctx.fact("jenkins_admin_password", res.stdout.strip())


# ------------------ application ------------------

def deploy_application(ctx: StepContext) -> None:
    """
    - fresh clone of the application repository
    - Dockerfile rendered into the checkout
    - image built, previous container replaced
    - local status check (warning only; the container may still be starting)
    """
    app = ctx.config.application
    checkout = f"{_home(ctx)}/{app.checkout_dir}"

    ctx.script(textwrap.dedent(f"""\
        command -v git >/dev/null || (sudo apt-get update && sudo DEBIAN_FRONTEND=noninteractive apt-get install -y git)
        rm -rf {shlex.quote(checkout)}
        git clone --depth 1 {shlex.quote(app.repo_url)} {shlex.quote(checkout)}
    """))

    dockerfile = _renderer.render(
        "Dockerfile.j2",
        {
            "base_image": app.base_image,
            "container_port": app.container_port,
            "status_path": app.status_path,
            "image": app.image,
        },
    )
    ctx.put_text(dockerfile, f"{checkout}/Dockerfile")

    image = shlex.quote(app.image)
    container = shlex.quote(app.container)
    ctx.run(f"docker build -t {image} {shlex.quote(checkout)}", sudo=True)
    ctx.run(f"docker stop {container} 2>/dev/null || true", sudo=True)
    ctx.run(f"docker rm {container} 2>/dev/null || true", sudo=True)
    ctx.run(
        f"docker run -d --name {container} --restart unless-stopped "
        f"-p {app.port}:{app.container_port} {image}",
        sudo=True,
    )

    status = ctx.run(_wait_http(f"http://localhost:{app.port}{app.status_path}", 6, 5), check=False)
    if status.ok:
        log.info("[%s] Application is running on %s:%d", ctx.host.role, ctx.host.address, app.port)
    else:
        log.warning(
            "[%s] Application status check failed on %s, container might still be starting",
            ctx.host.role, ctx.host.address,
        )


# ------------------ monitoring ------------------

def setup_monitoring(ctx: StepContext) -> None:
    """
    - prometheus.yml scraping itself and the application host
    - docker-compose.yml with Prometheus and Grafana
    - stack restarted with ``docker compose``
    """
    mon = ctx.config.monitoring
    app = ctx.config.application
    remote_dir = mon.remote_dir

    app_address = ctx.peers.get(APPLICATION, "host.docker.internal")
    prometheus_yml = _renderer.render(
        "prometheus.yml.j2",
        {
            "scrape_interval": mon.scrape_interval,
            "prometheus_port": 9090,
            "app_job": app.image,
            "app_target": f"{app_address}:{app.port}",
        },
    )
    compose_yml = _renderer.render(
        "docker-compose.yml.j2",
        {
            "prometheus_port": mon.prometheus_port,
            "grafana_port": mon.grafana_port,
            "grafana_admin_password": mon.grafana_admin_password,
        },
    )

    ctx.run(f"install -d -m 0755 {shlex.quote(remote_dir)}", sudo=True)
    ctx.put_text(prometheus_yml, f"{remote_dir}/prometheus.yml", sudo=True)
    ctx.put_text(compose_yml, f"{remote_dir}/docker-compose.yml", mode=0o600, sudo=True)

    ctx.script(textwrap.dedent(f"""\
        cd {shlex.quote(remote_dir)}
        docker compose down 2>/dev/null || true
        docker compose up -d
    """), sudo=True)

    for name, port in (("Prometheus", mon.prometheus_port), ("Grafana", mon.grafana_port)):
        if ctx.run(_wait_http(f"http://localhost:{port}", 6, 5), check=False).ok:
            log.info("[%s] %s is running on %s:%d", ctx.host.role, name, ctx.host.address, port)
        else:
            log.warning("[%s] %s health check failed on %s:%d", ctx.host.role, name, ctx.host.address, port)
