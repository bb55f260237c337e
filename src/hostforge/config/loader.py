# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/config/loader.py
from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from hostforge.errors import ConfigurationError
from .models import HostforgeConfig

log = logging.getLogger("hostforge")


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _find_secrets_file(config_path: Path) -> Path | None:
    """
    Locate secrets.yaml:

    1. HOSTFORGE_SECRETS_FILE environment variable (explicit override)
    2. secrets.yaml in the same directory as the config
    """
    env = os.environ.get("HOSTFORGE_SECRETS_FILE")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("HOSTFORGE_SECRETS_FILE=%s does not exist, skipping", env)
        return None

    p = config_path.parent / "secrets.yaml"
    if p.is_file():
        return p

    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    try:
        data = yaml.safe_load(expanded) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return data


def load_config(path: str | Path | None = None) -> HostforgeConfig:
    """
    Load and validate a hostforge YAML config.

    With no path the built-in defaults are used (three roles: application,
    ci, monitoring). Secrets such as the Grafana admin password can live in a
    separate ``secrets.yaml`` that mirrors the config structure; it is
    deep-merged before validation. ``${ENV_VAR}`` placeholders are expanded in
    both files.
    """
    if path is None:
        return HostforgeConfig()

    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Config file '{path}' not found")

    data = _load_yaml(path)

    secrets_path = _find_secrets_file(path)
    if secrets_path:
        log.debug("Merging secrets from %s", secrets_path)
        _deep_merge(data, _load_yaml(secrets_path))

    try:
        return HostforgeConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config {path}: {e}") from e
