"""
Runtime dependency checks and browser installation.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

import importlib.util
import subprocess
import sys
from pathlib import Path

from colorama import Fore, Style

# (import name, pip name)
REQUIRED_MODULES = [
    ("playwright", "playwright"),
    ("markdown_it", "markdown-it-py"),
    ("mdit_py_plugins", "mdit-py-plugins"),
    ("linkify_it", "linkify-it-py"),
    ("bleach", "bleach"),
    ("colorama", "colorama"),
]

OPTIONAL_MODULES = [
    ("PIL", "Pillow"),
    ("reportlab", "reportlab"),
    ("fastapi", "fastapi"),
    ("uvicorn", "uvicorn"),
]


def _ok(message: str) -> None:
    print(f"{Fore.GREEN}✓{Style.RESET_ALL} {message}")


def _fail(message: str) -> None:
    print(f"{Fore.RED}✗{Style.RESET_ALL} {message}")


def _module_available(module_name: str) -> bool:
    return importlib.util.find_spec(module_name) is not None


def chromium_installed() -> bool:
    """Whether Playwright's Chromium build is present on disk."""
    from playwright.sync_api import sync_playwright

    try:
        with sync_playwright() as p:
            return Path(p.chromium.executable_path).exists()
    except Exception:
        return False


def check_dependencies(check_optional: bool = True) -> bool:
    """Report which dependencies are usable; False if a required one is missing."""
    all_ok = True

    for module_name, pip_name in REQUIRED_MODULES:
        if _module_available(module_name):
            _ok(f"{pip_name} is available")
        else:
            _fail(f"Error: {pip_name} is required but not found. Run: pip install {pip_name}")
            all_ok = False

    if _module_available("playwright"):
        if chromium_installed():
            _ok("Playwright Chromium is available")
        else:
            _fail("Error: Playwright Chromium is not installed. Run: python -m playwright install chromium")
            all_ok = False

    if check_optional:
        for module_name, pip_name in OPTIONAL_MODULES:
            if _module_available(module_name):
                _ok(f"{pip_name} is available")
            else:
                print(f"{Fore.YELLOW}!{Style.RESET_ALL} {pip_name} not found (optional). Run: pip install {pip_name}")

    return all_ok


def install_browsers() -> bool:
    """Install Playwright's Chromium build."""
    print("Installing Playwright Chromium...")
    try:
        subprocess.run(
            [sys.executable, "-m", "playwright", "install", "chromium"],
            check=True, capture_output=True, text=True,
        )
        _ok("Playwright Chromium installed successfully")
        return True
    except subprocess.CalledProcessError as e:
        _fail(f"Failed to install Playwright Chromium: {e.stderr}")
        return False
