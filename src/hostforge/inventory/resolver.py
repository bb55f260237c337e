# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/inventory/resolver.py
from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from hostforge.deploy.models import DEFAULT_ROLES, Host
from hostforge.errors import ConfigurationError, ResolutionError
from hostforge.observers.dispatcher import EventBus
from hostforge.observers.events import HostsResolved, new_ctx
from .terraform import OutputProvider

log = logging.getLogger("hostforge")


class HostResolver:
    """
    Turns either explicit addresses or a provider output into Hosts.

    Positional addresses are bound to ``roles`` in order and then validated
    as a role -> address mapping. No retries: any failure ends the run.
    """

    def __init__(
        self,
        roles: Sequence[str] = DEFAULT_ROLES,
        provider: Optional[OutputProvider] = None,
        *,
        output_name: str = "instance_public_ips",
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
    ):
        self.roles = list(roles)
        self.provider = provider
        self.output_name = output_name
        self.bus = bus or EventBus()
        self.run_id = run_id

    def resolve(self, explicit: Optional[Sequence[str]] = None) -> List[Host]:
        if explicit:
            if len(explicit) != len(self.roles):
                raise ConfigurationError(
                    f"Expected {len(self.roles)} addresses ({', '.join(self.roles)}), got {len(explicit)}"
                )
            mapping = dict(zip(self.roles, explicit))
            log.info("Using provided instance addresses: %s", ", ".join(explicit))
            return self._build(mapping, source="explicit")

        return self._from_provider()

    def resolve_mapping(self, mapping: Mapping[str, str]) -> List[Host]:
        return self._build(dict(mapping), source="explicit")

    def _validate(self, mapping: Dict[str, str]) -> None:
        unknown = set(mapping) - set(self.roles)
        if unknown:
            raise ConfigurationError(f"Unknown roles: {', '.join(sorted(unknown))}")
        missing = [r for r in self.roles if r not in mapping]
        if missing:
            raise ConfigurationError(f"No address for roles: {', '.join(missing)}")
        empty = [r for r, a in mapping.items() if not a or not str(a).strip()]
        if empty:
            raise ConfigurationError(f"Empty address for roles: {', '.join(empty)}")

    def _build(self, mapping: Dict[str, str], *, source: str) -> List[Host]:
        self._validate(mapping)
        hosts = [Host(address=mapping[role].strip(), role=role) for role in self.roles]
        for h in hosts:
            log.info("Instance (%s): %s", h.role, h.address)
        self.bus.emit(
            HostsResolved(
                source=source,
                hosts={h.role: h.address for h in hosts},
                **new_ctx(self.run_id),
            )
        )
        return hosts

    def _from_provider(self) -> List[Host]:
        if self.provider is None:
            raise ConfigurationError("No addresses given and no infrastructure provider configured")

        log.info("Getting instance addresses from output '%s'...", self.output_name)
        addresses = self.provider.get_output(self.output_name)
        if not addresses:
            raise ResolutionError(
                f"Could not get instance addresses from '{self.output_name}'. "
                f"Please provide them as arguments."
            )
        if len(addresses) < len(self.roles):
            raise ResolutionError(
                f"Output '{self.output_name}' has {len(addresses)} addresses, "
                f"{len(self.roles)} roles need one each"
            )
        if len(addresses) > len(self.roles):
            log.warning(
                "Output '%s' has %d addresses; using the first %d",
                self.output_name, len(addresses), len(self.roles),
            )
        return self._build(dict(zip(self.roles, addresses)), source="terraform")
