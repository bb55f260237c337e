# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostforge/bootstrap/template_renderer.py
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Mapping

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from hostforge.errors import ConfigurationError

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def expand_env_vars(value: str) -> str:
    """Replace ${NAME} with the environment value; unknown names are left as-is."""
    return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(0)), value)


class TemplateRenderer:
    """
    Renders the files pushed to hosts (Dockerfile, compose file, configs).
    A missing template or variable is a configuration problem, not a host one.
    """

    def __init__(self, templates_dir: str | Path = TEMPLATES_DIR):
        self.templates_dir = Path(templates_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=False,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )

    def render(self, template_name: str, context: Mapping[str, Any]) -> str:
        values = {k: expand_env_vars(v) if isinstance(v, str) else v for k, v in context.items()}
        try:
            return self.env.get_template(template_name).render(**values)
        except TemplateError as e:
            raise ConfigurationError(f"cannot render {template_name}: {e}") from e
