"""
Configuration for the converter, HTTP server and PDF engines.

Values are resolved in order: CLI overrides, environment (PUBMD_* variables,
optionally from a .env file), built-in defaults.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .options import Margins

DEFAULT_MERMAID_SCRIPT_URL = "https://cdn.jsdelivr.net/npm/mermaid@11.6.0/dist/mermaid.min.js"

PDF_ENGINES = ("playwright", "raster")

_MARGIN_PATTERN = re.compile(r'^(-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)\s*(cm|in|mm|pt|px)?$')

# Millimetres per unit
_MM_PER_UNIT = {
    'mm': 1.0,
    'cm': 10.0,
    'in': 25.4,
    'pt': 25.4 / 72,
    'px': 25.4 / 96,  # Assuming 96 DPI
}


class Config:
    """Layered configuration with typed accessors."""

    DEFAULTS: Dict[str, Any] = {
        "source_dir": "docs",
        "output_dir": "output",
        "temp_dir": "temp",
        "engine": "playwright",
        "mermaid_script_url": DEFAULT_MERMAID_SCRIPT_URL,
        "diagram_timeout_ms": 15000,
        "pdf_timeout_ms": 30000,
        "server_host": "127.0.0.1",
        "server_port": 3001,
        "max_concurrent_jobs": 2,
        "max_workers": 4,
        "fonts_dir": None,
        "debug": False,
    }

    def __init__(self, cli_config: Optional[Dict[str, Any]] = None, env_file: Optional[str] = None):
        load_dotenv(env_file)
        self._cli = {k: v for k, v in (cli_config or {}).items() if v is not None}

    def _get(self, key: str) -> Any:
        if key in self._cli:
            return self._cli[key]
        env_value = os.environ.get(f"PUBMD_{key.upper()}")
        if env_value is not None and env_value != "":
            return env_value
        return self.DEFAULTS[key]

    def _get_int(self, key: str) -> int:
        value = self._get(key)
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"Configuration value '{key}' must be an integer, got {value!r}")

    def _get_bool(self, key: str) -> bool:
        value = self._get(key)
        if isinstance(value, bool):
            return value
        return str(value).lower() in ("1", "true", "yes", "on")

    def get_source_dir(self) -> Path:
        return Path(self._get("source_dir"))

    def get_output_dir(self) -> Path:
        return Path(self._get("output_dir"))

    def get_temp_dir(self) -> Path:
        return Path(self._get("temp_dir"))

    def get_engine(self) -> str:
        engine = str(self._get("engine")).lower()
        if engine not in PDF_ENGINES:
            raise ValueError(f"Invalid PDF engine '{engine}'. Available engines: {', '.join(PDF_ENGINES)}")
        return engine

    def get_mermaid_script_url(self) -> str:
        return str(self._get("mermaid_script_url"))

    def get_diagram_timeout_ms(self) -> int:
        return self._get_int("diagram_timeout_ms")

    def get_pdf_timeout_ms(self) -> int:
        return self._get_int("pdf_timeout_ms")

    def get_server_host(self) -> str:
        return str(self._get("server_host"))

    def get_server_port(self) -> int:
        return self._get_int("server_port")

    def get_max_concurrent_jobs(self) -> int:
        return max(1, self._get_int("max_concurrent_jobs"))

    def get_max_workers(self) -> int:
        return max(1, self._get_int("max_workers"))

    def get_fonts_dir(self) -> Optional[Path]:
        value = self._get("fonts_dir")
        return Path(value) if value else None

    def is_debug(self) -> bool:
        return self._get_bool("debug")


def margin_to_mm(margin_str: str) -> float:
    """Validate a single CSS margin value and convert it to millimetres.

    Accepts in, cm, mm, pt and px (inches when no unit is given); the value
    must lie between 0 and 3 inches.
    """
    match = _MARGIN_PATTERN.match(margin_str.strip())
    if not match:
        raise ValueError(f"Invalid margin format: '{margin_str}'. Use format like '1in', '2.5cm', '10mm', etc.")

    value_str, unit = match.groups()
    value_mm = float(value_str) * _MM_PER_UNIT[unit or 'in']

    if value_mm < 0:
        raise ValueError(f"Margin cannot be negative: '{margin_str}'. Minimum value is 0.")
    if value_mm > 3 * 25.4:
        raise ValueError(f"Margin too large: '{margin_str}'. Maximum value is 3 inches (7.62cm).")

    return round(value_mm, 3)


def parse_margins(page_margins: str) -> Margins:
    """Parse a CSS-style margin string with 1, 2 or 4 values into Margins."""
    parts = page_margins.split()

    if len(parts) == 1:
        margin = margin_to_mm(parts[0])
        return Margins(margin, margin, margin, margin)
    if len(parts) == 2:
        vertical = margin_to_mm(parts[0])
        horizontal = margin_to_mm(parts[1])
        return Margins(vertical, horizontal, vertical, horizontal)
    if len(parts) == 4:
        top, right, bottom, left = (margin_to_mm(p) for p in parts)
        return Margins(top, right, bottom, left)
    raise ValueError(f"Invalid margin format: '{page_margins}'. Use 1, 2, or 4 values.")
