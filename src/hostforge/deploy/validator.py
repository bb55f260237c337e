# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/deploy/validator.py
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

import requests

from ..errors import ProbeFailure
from ..observers.dispatcher import EventBus
from ..observers.events import ProbeChecked, new_ctx
from .models import Host, ProbeResult, ValidationProbe

log = logging.getLogger("hostforge")


class Validator:
    """
    Best-effort HTTP checks against provisioned services.

    A probe passes when the endpoint answers with a status below 400, the
    same rule as ``curl -f``. ``validate`` never raises: every probe resolves
    to a ProbeResult.

    Probes run on a thread pool. Without an injected ``session`` each request
    goes through ``requests.get``, so no Session is shared across threads; an
    injected session must be safe to share.
    """

    def __init__(
        self,
        *,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
        max_workers: int = 8,
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
    ):
        self.timeout = timeout
        self.session = session
        self.max_workers = max_workers
        self.bus = bus or EventBus()
        self.run_id = run_id

    def _check(self, host: Host, probe: ValidationProbe) -> ProbeResult:
        url = probe.url(host.address)
        try:
            get = self.session.get if self.session is not None else requests.get
            r = get(url, timeout=self.timeout)
            if r.status_code >= 400:
                raise ProbeFailure(f"HTTP {r.status_code}")
            ok, detail = True, f"HTTP {r.status_code}"
        except ProbeFailure as e:
            ok, detail = False, str(e)
        except requests.RequestException as e:
            ok = False
            detail = f"{type(e).__name__}: {e}"
        except Exception as e:  # noqa: BLE001 - a probe must never fail the run
            log.debug("probe %s raised unexpectedly", url, exc_info=True)
            ok = False
            detail = f"{type(e).__name__}: {e}"
        return self._record(host, probe, ok, detail)

    def _record(self, host: Host, probe: ValidationProbe, ok: bool, detail: str) -> ProbeResult:
        url = probe.url(host.address)
        if ok:
            log.info("[%s] %s is accessible on %s", host.role, probe.name, url)
        else:
            log.warning("[%s] %s is not accessible on %s (%s)", host.role, probe.name, url, detail)
        self.bus.emit(
            ProbeChecked(
                address=host.address,
                probe=probe.name,
                url=url,
                ok=ok,
                detail=detail,
                **new_ctx(self.run_id),
            )
        )
        return ProbeResult(host=host, probe=probe, ok=ok, detail=detail)

    def validate(self, host: Host, probes: Sequence[ValidationProbe]) -> List[ProbeResult]:
        if not probes:
            return []
        workers = max(1, min(self.max_workers, len(probes)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="probe") as pool:
            return list(pool.map(lambda p: self._check(host, p), probes))

    def skip(self, host: Host, probes: Sequence[ValidationProbe], reason: str) -> List[ProbeResult]:
        """Report every probe as failed without touching the network."""
        return [self._record(host, p, False, f"skipped: {reason}") for p in probes]
