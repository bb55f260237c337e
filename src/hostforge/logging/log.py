# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

#src/hostforge/logging/log.py

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

DEFAULT_LOG_DIR = Path.home() / ".hostforge" / "logs"
LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(threadName)s | %(message)s"


def reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "hostforge",
    verbose: bool = False,
    run_id: str | None = None,
) -> tuple[logging.Logger, str, Path]:
    """
    One log file per run plus console output.

    The file always gets the full DEBUG trace; the console shows INFO, or
    DEBUG when ``verbose``. ``run_id`` names the log file and is returned so
    the orchestrator and observers tag their events with the same id. A
    fresh uuid is used when the caller does not supply one.
    """
    run_id = run_id or str(uuid.uuid4())
    base_dir = Path(base_dir) if base_dir is not None else DEFAULT_LOG_DIR
    base_dir.mkdir(parents=True, exist_ok=True)

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{name}-{stamp}-{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    reset_handlers(logger)
    # handlers live on this logger only; the root logger stays untouched
    logger.propagate = False

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    file_handler = logging.FileHandler(log_path)
    file_handler.setLevel(logging.DEBUG)
    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in (file_handler, console):
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.info("=== hostforge run %s started ===", run_id)
    logger.debug("log_file=%s", log_path)
    return logger, run_id, log_path
