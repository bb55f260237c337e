# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/inventory/terraform.py
from __future__ import annotations

import json
import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from hostforge.errors import ConfigurationError, InfrastructureError, ResolutionError

log = logging.getLogger("hostforge")


class OutputProvider(Protocol):
    """Read-only view of an infrastructure-state provider."""

    def get_output(self, name: str) -> List[str]: ...


class TerraformCli:
    """
    Thin wrapper around the terraform binary.

    ``get_output`` is all the resolver needs; ``init``/``plan``/``apply`` back
    the ``up`` command.
    """

    def __init__(self, working_dir: str | Path = ".", binary: str = "terraform"):
        self.working_dir = Path(working_dir)
        self.binary = binary

    def _run(self, args: Sequence[str], *, capture: bool = True) -> subprocess.CompletedProcess:
        cmd = [self.binary, *args]
        log.debug("$ %s (cwd=%s)", " ".join(cmd), self.working_dir)
        try:
            return subprocess.run(
                cmd,
                cwd=str(self.working_dir),
                capture_output=capture,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            raise ConfigurationError(f"'{self.binary}' is not installed") from e

    def check_installed(self) -> None:
        if shutil.which(self.binary) is None:
            raise ConfigurationError(
                f"'{self.binary}' is not installed. Please install the Terraform CLI."
            )

    def _stream(self, *args: str) -> None:
        cp = self._run(args, capture=False)
        if cp.returncode != 0:
            raise InfrastructureError(f"terraform {' '.join(args)} failed (rc={cp.returncode})")

    def init(self) -> None:
        self._stream("init", "-input=false")

    def plan(self, plan_file: str) -> None:
        self._stream("plan", "-input=false", f"-out={plan_file}")

    def apply(self, plan_file: str) -> None:
        self._stream("apply", "-input=false", plan_file)

    def get_output(self, name: str) -> List[str]:
        cp = self._run(["output", "-json", name])
        if cp.returncode != 0:
            raise ResolutionError(
                f"terraform output {name} failed (rc={cp.returncode}): {cp.stderr.strip()}"
            )
        return parse_output(name, cp.stdout)


def parse_output(name: str, raw: Optional[str]) -> List[str]:
    """Parse ``terraform output -json`` for a list of addresses."""
    if not raw or not raw.strip():
        raise ResolutionError(f"terraform output '{name}' is empty")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ResolutionError(f"terraform output '{name}' is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise ResolutionError(f"terraform output '{name}' is not a list (got {type(data).__name__})")
    if not all(isinstance(item, str) and item.strip() for item in data):
        raise ResolutionError(f"terraform output '{name}' contains non-string or empty entries")
    if not data:
        raise ResolutionError(f"terraform output '{name}' is an empty list")
    return [item.strip() for item in data]
