"""
Colored console logging shared by every pipeline component.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

import os
import threading
from typing import Optional

from colorama import init, Fore, Style

# Initialize colorama for cross-platform colored output
init(autoreset=True)


class ConsoleLogger:
    """Prefix-tagged, colored console logger (thread-safe)."""

    def __init__(self, name: str = "pubmd", debug: bool = False):
        self.name = name
        self.debug_enabled = debug
        self._lock = threading.Lock()

    def _emit(self, color: str, tag: str, message: str) -> None:
        with self._lock:
            print(f"{color}[{tag}]{Style.RESET_ALL} {message}")

    def debug(self, message: str) -> None:
        """Log debug message with color (only if debug mode is enabled)."""
        if self.debug_enabled:
            self._emit(Fore.CYAN, "DEBUG", message)

    def info(self, message: str) -> None:
        """Log info message with color."""
        self._emit(Fore.GREEN, "INFO", message)

    def warning(self, message: str) -> None:
        """Log warning message with color."""
        self._emit(Fore.YELLOW, "WARNING", message)

    def error(self, message: str) -> None:
        """Log error message with color."""
        self._emit(Fore.RED, "ERROR", message)

    def success(self, message: str) -> None:
        """Log success message with color."""
        self._emit(Fore.GREEN, "OK", message)


_default_logger: Optional[ConsoleLogger] = None


def get_logger(debug: Optional[bool] = None) -> ConsoleLogger:
    """Return the process-wide logger, creating it on first use.

    Debug output defaults to the PUBMD_DEBUG environment variable.
    """
    global _default_logger
    if _default_logger is None:
        env_debug = os.environ.get("PUBMD_DEBUG", "false").lower() == "true"
        _default_logger = ConsoleLogger(debug=env_debug)
    if debug is not None:
        _default_logger.debug_enabled = debug
    return _default_logger
