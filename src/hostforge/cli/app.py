# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/cli/app.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from hostforge.bootstrap.pipelines import build_pipelines, build_probes
from hostforge.config.loader import load_config
from hostforge.config.models import HostforgeConfig
from hostforge.deploy.orchestrator import Orchestrator
from hostforge.deploy.report import echo_report
from hostforge.errors import ConfigurationError, InfrastructureError, ResolutionError
from hostforge.inventory.resolver import HostResolver
from hostforge.inventory.terraform import OutputProvider, TerraformCli
from hostforge.logging.log import init_logging
from hostforge.observers.dispatcher import EventBus
from hostforge.observers.jsonfile import JsonFileObserver
from hostforge.observers.logger import LoggerObserver
from hostforge.utils.ssh import check_credential
from hostforge.utils.ssh_runner import SSHChannel


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="hostforge provisioning CLI", no_args_is_help=True)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def _apply_overrides(
    cfg: HostforgeConfig,
    *,
    key: Optional[Path],
    user: Optional[str],
    max_attempts: Optional[int],
    interval: Optional[float],
    settle: Optional[float],
) -> HostforgeConfig:
    if key is not None:
        cfg.ssh.key_path = key
    if user is not None:
        cfg.ssh.user = user
    if max_attempts is not None:
        cfg.readiness.max_attempts = max_attempts
    if interval is not None:
        cfg.readiness.interval_seconds = interval
    if settle is not None:
        cfg.settle_seconds = settle
    return cfg


def _bus(logger: logging.Logger, events_file: Optional[Path]) -> EventBus:
    observers = [LoggerObserver(logger)]
    if events_file is not None:
        observers.append(JsonFileObserver(events_file))
    return EventBus(observers=observers)


def run_setup(
    cfg: HostforgeConfig,
    addresses: List[str],
    *,
    provider: Optional[OutputProvider],
    logger: logging.Logger,
    run_id: str,
    events_file: Optional[Path] = None,
) -> int:
    """
    Resolve hosts, provision them and print the report. Returns the exit code.
    """
    bus = _bus(logger, events_file)

    try:
        hosts = HostResolver(
            cfg.roles,
            provider,
            output_name=cfg.terraform.output_name,
            bus=bus,
            run_id=run_id,
        ).resolve(addresses or None)
        key_path = check_credential(cfg.ssh.key_path)
        pipelines = build_pipelines(cfg)
    except (ConfigurationError, ResolutionError) as e:
        logger.error("%s", e)
        typer.secho(f"ERROR: {e}", fg=typer.colors.RED, err=True)
        return EXIT_CONFIG

    channel = SSHChannel(
        username=cfg.ssh.user,
        key_path=key_path,
        port=cfg.ssh.port,
        connect_timeout=cfg.readiness.connect_timeout_seconds,
        command_timeout=cfg.ssh.command_timeout,
    )
    orchestrator = Orchestrator(
        cfg,
        channel,
        pipelines,
        build_probes(cfg),
        bus=bus,
        run_id=run_id,
    )
    report = orchestrator.run(hosts)

    typer.echo("")
    echo_report(report, cfg)
    return report.exit_code


def _load(config: Optional[Path]) -> HostforgeConfig:
    try:
        return load_config(config)
    except ConfigurationError as e:
        typer.secho(f"ERROR: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_CONFIG)


def _start(cfg: HostforgeConfig, debug: bool, run_id: Optional[str]):
    logger, run_id, log_path = init_logging(base_dir=cfg.log_dir, verbose=debug, run_id=run_id)
    typer.echo("")
    typer.secho("hostforge run started", bold=True)
    typer.echo(f"  Run ID   : {run_id}")
    typer.echo(f"  Logs     : {log_path}")
    typer.echo("")
    return logger, run_id


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def setup(
    addresses: Optional[List[str]] = typer.Argument(
        None,
        help="One address per role, in role order. Omit to read them from terraform output.",
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="hostforge YAML config"),
    key: Optional[Path] = typer.Option(None, "--key", help="SSH private key (mode 0600)"),
    user: Optional[str] = typer.Option(None, "--user", help="SSH username"),
    max_attempts: Optional[int] = typer.Option(None, "--max-attempts", min=1, help="Readiness attempts per host"),
    interval: Optional[float] = typer.Option(None, "--interval", min=0, help="Seconds between readiness attempts"),
    settle: Optional[float] = typer.Option(None, "--settle", min=0, help="Seconds to wait before validation"),
    events_file: Optional[Path] = typer.Option(None, "--events-file", help="Append lifecycle events as JSON lines"),
    run_id: Optional[str] = typer.Option(None, "--run-id", help="Correlation id for logs and events"),
    debug: bool = typer.Option(False, "--debug"),
):
    """Wait for the hosts, provision every role and validate the services."""
    cfg = _apply_overrides(
        _load(config),
        key=key, user=user, max_attempts=max_attempts, interval=interval, settle=settle,
    )
    addresses = addresses or []
    if addresses and len(addresses) != len(cfg.roles):
        typer.secho(
            f"ERROR: expected 0 or {len(cfg.roles)} addresses ({', '.join(cfg.roles)}), got {len(addresses)}",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(EXIT_CONFIG)

    logger, run_id = _start(cfg, debug, run_id)
    provider = None
    if not addresses:
        provider = TerraformCli(cfg.terraform.working_dir, cfg.terraform.binary)

    raise typer.Exit(
        run_setup(cfg, addresses, provider=provider, logger=logger, run_id=run_id, events_file=events_file)
    )


@app.command()
def up(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="hostforge YAML config"),
    key: Optional[Path] = typer.Option(None, "--key", help="SSH private key (mode 0600)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not prompt for confirmation"),
    events_file: Optional[Path] = typer.Option(None, "--events-file"),
    run_id: Optional[str] = typer.Option(None, "--run-id"),
    debug: bool = typer.Option(False, "--debug"),
):
    """terraform init/plan/apply, then run setup against the new instances."""
    cfg = _apply_overrides(
        _load(config), key=key, user=None, max_attempts=None, interval=None, settle=None,
    )

    if not yes and not typer.confirm("This will deploy infrastructure. Continue?"):
        typer.echo("Deployment cancelled")
        raise typer.Exit(EXIT_OK)

    logger, run_id = _start(cfg, debug, run_id)
    tf = TerraformCli(cfg.terraform.working_dir, cfg.terraform.binary)
    plan_file = Path(cfg.terraform.working_dir) / cfg.terraform.plan_file

    applied = False
    try:
        tf.check_installed()
        logger.info("Initializing Terraform...")
        tf.init()
        logger.info("Planning infrastructure deployment...")
        tf.plan(cfg.terraform.plan_file)

        if yes or typer.confirm("Review the plan above. Apply infrastructure?"):
            logger.info("Applying infrastructure...")
            tf.apply(cfg.terraform.plan_file)
            applied = True
    except ConfigurationError as e:
        typer.secho(f"ERROR: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_CONFIG)
    except InfrastructureError as e:
        logger.error("%s", e)
        typer.secho(f"ERROR: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_FAILED)
    finally:
        plan_file.unlink(missing_ok=True)

    if not applied:
        typer.echo("Deployment cancelled")
        raise typer.Exit(EXIT_OK)

    raise typer.Exit(
        run_setup(cfg, [], provider=tf, logger=logger, run_id=run_id, events_file=events_file)
    )


if __name__ == "__main__":
    app()
