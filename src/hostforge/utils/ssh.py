# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import stat
from pathlib import Path
from typing import Optional

import paramiko

from hostforge.errors import ConfigurationError

REQUIRED_KEY_MODE = 0o600


def check_credential(path: str | Path) -> Path:
    """
    The private key must exist and be readable by its owner only (0600).
    Checked once before any host work begins.
    """
    key_path = Path(path).expanduser()
    if not key_path.is_file():
        raise ConfigurationError(f"SSH key file '{key_path}' not found")
    mode = stat.S_IMODE(key_path.stat().st_mode)
    if mode != REQUIRED_KEY_MODE:
        raise ConfigurationError(
            f"SSH key file '{key_path}' has mode {mode:04o}, expected "
            f"{REQUIRED_KEY_MODE:04o} (run: chmod 600 {key_path})"
        )
    return key_path


def load_private_key(key_path: str | Path) -> paramiko.PKey:
    last_err: Optional[Exception] = None
    for key_cls in (
        paramiko.Ed25519Key,
        paramiko.RSAKey,
        paramiko.ECDSAKey,
    ):
        try:
            return key_cls.from_private_key_file(str(key_path))
        except paramiko.SSHException as e:
            last_err = e
            continue
    raise ConfigurationError(f"Unsupported private key format for {key_path}: {last_err}")


def open_ssh(
    address: str,
    *,
    username: str,
    pkey: paramiko.PKey,
    port: int = 22,
    connect_timeout: float = 10.0,
) -> paramiko.SSHClient:
    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    client.connect(
        hostname=address,
        port=port,
        username=username,
        pkey=pkey,
        look_for_keys=False,
        allow_agent=False,
        timeout=connect_timeout,
        banner_timeout=connect_timeout,
        auth_timeout=connect_timeout,
    )

    return client
