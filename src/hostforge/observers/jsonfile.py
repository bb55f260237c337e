# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/observers/jsonfile.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Optional

from .events import BaseEvent


class JsonFileObserver:
    """
    Appends events as JSON lines (``{"type": ..., **fields}``) for later
    inspection. ``only`` restricts output to the named event types.
    """

    def __init__(self, path: str | Path, *, only: Optional[Iterable[str]] = None):
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.only = set(only) if only is not None else None

    def notify(self, event: BaseEvent) -> None:
        etype = type(event).__name__
        if self.only is not None and etype not in self.only:
            return
        line = json.dumps({"type": etype, **event.dict()}, default=str, sort_keys=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
