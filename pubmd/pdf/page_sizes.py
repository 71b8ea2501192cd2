"""
Paper sizes and unit conversions shared by the PDF engines.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

import re
from typing import Optional, Tuple, Union

MM_PER_INCH = 25.4
PX_PER_INCH = 96
PT_PER_INCH = 72

# Portrait (width, height) in millimetres, keyed by lower-case format name
PAPER_SIZES_MM = {
    "letter": ("Letter", 215.9, 279.4),
    "legal": ("Legal", 215.9, 355.6),
    "tabloid": ("Tabloid", 279.4, 431.8),
    "ledger": ("Ledger", 431.8, 279.4),
    "a0": ("A0", 841.0, 1189.0),
    "a1": ("A1", 594.0, 841.0),
    "a2": ("A2", 420.0, 594.0),
    "a3": ("A3", 297.0, 420.0),
    "a4": ("A4", 210.0, 297.0),
    "a5": ("A5", 148.0, 210.0),
    "a6": ("A6", 105.0, 148.0),
}

_LENGTH_PATTERN = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*(px|in|cm|mm)?\s*$', re.IGNORECASE)
_CUSTOM_FORMAT_PATTERN = re.compile(r'^\s*(\d+(?:\.\d+)?\s*(?:px|in|cm|mm)?)\s*[x×]\s*(\d+(?:\.\d+)?\s*(?:px|in|cm|mm)?)\s*$', re.IGNORECASE)

_MM_PER_UNIT = {
    "px": MM_PER_INCH / PX_PER_INCH,
    "in": MM_PER_INCH,
    "cm": 10.0,
    "mm": 1.0,
}


def mm_to_px(mm: float) -> float:
    return mm / MM_PER_INCH * PX_PER_INCH


def mm_to_pt(mm: float) -> float:
    return mm / MM_PER_INCH * PT_PER_INCH


def length_to_mm(value: Union[str, float, int]) -> float:
    """Convert a CSS length (bare numbers are pixels, like Playwright) to mm."""
    if isinstance(value, (int, float)):
        return float(value) * _MM_PER_UNIT["px"]
    match = _LENGTH_PATTERN.match(str(value))
    if not match:
        raise ValueError(f"Invalid length '{value}'. Use a number or a value with px, in, cm or mm.")
    number, unit = match.groups()
    return float(number) * _MM_PER_UNIT[(unit or "px").lower()]


def length_to_css(value: Union[str, float, int]) -> str:
    """Format a length for Playwright's width/height options."""
    if isinstance(value, (int, float)):
        return f"{value}px"
    return str(value).strip()


def canonical_format(page_format: Optional[str]) -> Optional[str]:
    """Return Playwright's name for a known paper format, else None."""
    entry = PAPER_SIZES_MM.get((page_format or "A4").strip().lower())
    return entry[0] if entry else None


def parse_custom_format(page_format: str) -> Optional[Tuple[str, str]]:
    """Split a custom format like '200mm x 300mm' into (width, height)."""
    match = _CUSTOM_FORMAT_PATTERN.match(page_format or "")
    if not match:
        return None
    return match.group(1).replace(" ", ""), match.group(2).replace(" ", "")


def page_size_mm(
    page_format: Optional[str] = "A4",
    landscape: bool = False,
    width: Optional[Union[str, float]] = None,
    height: Optional[Union[str, float]] = None,
) -> Tuple[float, float]:
    """Resolve the physical page size (width, height) in millimetres.

    Explicit width/height override the format. Orientation swaps the
    format's dimensions but not explicit ones.
    """
    entry = PAPER_SIZES_MM.get((page_format or "A4").strip().lower())
    if entry:
        base_w, base_h = entry[1], entry[2]
    else:
        custom = parse_custom_format(page_format or "")
        if not custom:
            raise ValueError(f"Unknown page format '{page_format}'. Use a named format (e.g. A4, Letter) or '<width>x<height>'.")
        base_w, base_h = length_to_mm(custom[0]), length_to_mm(custom[1])

    if landscape:
        base_w, base_h = base_h, base_w

    w = length_to_mm(width) if width is not None else base_w
    h = length_to_mm(height) if height is not None else base_h
    return w, h
