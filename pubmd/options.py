"""
Option and record types passed between pipeline stages.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

import re
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional, Pattern, Union

MERMAID_THEMES = ("default", "base", "dark", "forest", "neutral", "null")
MERMAID_SECURITY_LEVELS = ("strict", "loose", "antiscript", "sandbox")
FONT_PREFERENCES = ("sans", "serif")
ORIENTATIONS = ("portrait", "landscape")

# Names the editor UI sends that are not Mermaid theme names
THEME_ALIASES = {
    "light": "default",
    "grey": "neutral",
    "gray": "neutral",
}

# camelCase keys of the JSON payload -> field names
_PARSE_KEYS = {
    "gfm": "gfm",
    "breaks": "breaks",
    "headerIds": "header_ids",
    "sanitizeHtml": "sanitize_html",
    "allowRawHtml": "allow_raw_html",
    "mermaidTheme": "mermaid_theme",
    "mermaidSecurityLevel": "mermaid_security_level",
    "fontPreference": "font_preference",
    "mermaidRenderTheme": "mermaid_render_theme",
    "mermaidThemeVariables": "mermaid_theme_variables",
}

_PDF_KEYS = {
    "filename": "filename",
    "pageFormat": "page_format",
    "orientation": "orientation",
    "scale": "scale",
    "printBackground": "print_background",
    "displayHeaderFooter": "display_header_footer",
    "headerTemplate": "header_template",
    "footerTemplate": "footer_template",
    "preferCSSPageSize": "prefer_css_page_size",
    "width": "width",
    "height": "height",
    "path": "path",
    "mermaidTheme": "mermaid_theme",
    "fontPreference": "font_preference",
}


_LENGTH_PATTERN = re.compile(r'^\s*(-?\d+(?:\.\d+)?)\s*(mm|cm|in|pt|px)?\s*$', re.IGNORECASE)

_MM_PER_UNIT = {
    "mm": 1.0,
    "cm": 10.0,
    "in": 25.4,
    "pt": 25.4 / 72,
    "px": 25.4 / 96,
}


def length_to_mm(value: Union[str, float, int]) -> float:
    """Convert a margin length to millimetres; unitless values are already mm."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid length: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _LENGTH_PATTERN.match(str(value))
    if not match:
        raise ValueError(f"Invalid length '{value}'. Use a number (mm) or a value with mm, cm, in, pt or px.")
    number, unit = match.groups()
    return round(float(number) * _MM_PER_UNIT[(unit or "mm").lower()], 3)


def normalize_theme(name: Optional[str]) -> str:
    """Map a theme name (or UI alias) to a Mermaid theme, defaulting to 'default'."""
    if not name:
        return "default"
    key = str(name).strip().lower()
    key = THEME_ALIASES.get(key, key)
    if key not in MERMAID_THEMES:
        raise ValueError(f"Invalid Mermaid theme '{name}'. Available themes: {', '.join(MERMAID_THEMES)}")
    return key


def normalize_security_level(level: Optional[str]) -> str:
    if not level:
        return "loose"
    key = str(level).strip().lower()
    if key not in MERMAID_SECURITY_LEVELS:
        raise ValueError(f"Invalid Mermaid security level '{level}'. Available levels: {', '.join(MERMAID_SECURITY_LEVELS)}")
    return key


def _normalize_font(pref: Optional[str]) -> Optional[str]:
    if pref is None:
        return None
    key = str(pref).strip().lower()
    # The editor sends "sans-serif" as well as "sans"
    if key in ("sans", "sans-serif"):
        return "sans"
    if key == "serif":
        return "serif"
    raise ValueError(f"Invalid font preference '{pref}'. Use 'sans' or 'serif'.")


@dataclass(frozen=True)
class ParseOptions:
    """Options for MarkdownRenderer.parse."""

    gfm: bool = True
    breaks: bool = True
    header_ids: bool = True
    sanitize_html: bool = True
    allow_raw_html: bool = True
    mermaid_theme: str = "default"
    mermaid_security_level: str = "loose"
    font_preference: Optional[str] = None
    mermaid_render_theme: Optional[str] = None
    mermaid_theme_variables: Optional[Mapping[str, str]] = None

    def __post_init__(self):
        object.__setattr__(self, "mermaid_theme", normalize_theme(self.mermaid_theme))
        object.__setattr__(self, "mermaid_security_level", normalize_security_level(self.mermaid_security_level))
        object.__setattr__(self, "font_preference", _normalize_font(self.font_preference))
        if self.mermaid_render_theme is not None:
            object.__setattr__(self, "mermaid_render_theme", normalize_theme(self.mermaid_render_theme))
        if self.mermaid_theme_variables is not None:
            object.__setattr__(self, "mermaid_theme_variables", dict(self.mermaid_theme_variables))

    @property
    def effective_theme(self) -> str:
        """Theme handed to mermaid.initialize.

        'base' is only selected when theme variables are available to drive it.
        """
        if self.mermaid_render_theme == "base" and self.mermaid_theme_variables:
            return "base"
        if self.mermaid_render_theme and self.mermaid_render_theme != "base":
            return self.mermaid_render_theme
        return self.mermaid_theme

    @property
    def effective_theme_variables(self) -> Optional[Dict[str, str]]:
        """Theme variables, only when the effective theme is 'base'."""
        if self.effective_theme == "base" and self.mermaid_theme_variables:
            return dict(self.mermaid_theme_variables)
        return None

    def merged(self, overrides: Union["ParseOptions", Mapping[str, Any], None]) -> "ParseOptions":
        """Return a copy with the caller's explicitly set values laid over these."""
        if overrides is None:
            return self
        if isinstance(overrides, ParseOptions):
            defaults = ParseOptions()
            changes = {
                f.name: getattr(overrides, f.name)
                for f in fields(ParseOptions)
                if getattr(overrides, f.name) != getattr(defaults, f.name)
            }
        else:
            changes = _translate_keys(overrides, _PARSE_KEYS, ParseOptions)
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ParseOptions":
        return cls().merged(data or {})


@dataclass(frozen=True)
class Margins:
    """Page margins in millimetres."""

    top: float = 10.0
    right: float = 10.0
    bottom: float = 10.0
    left: float = 10.0

    @classmethod
    def from_value(cls, value: Any) -> "Margins":
        """Build margins from a length (all sides), a mapping, or a Margins.

        Lengths are numbers in millimetres or strings with a unit
        ('10mm', '1in', '72px').
        """
        if value is None:
            return cls()
        if isinstance(value, Margins):
            return value
        if isinstance(value, (int, float, str)):
            side = length_to_mm(value)
            return cls(side, side, side, side)
        if isinstance(value, Mapping):
            default = cls()
            return cls(**{
                side: length_to_mm(value[side]) if value.get(side) is not None else getattr(default, side)
                for side in ("top", "right", "bottom", "left")
            })
        raise ValueError(f"Invalid margins: {value!r}")

    def as_css(self) -> Dict[str, str]:
        return {
            "top": f"{self.top}mm",
            "right": f"{self.right}mm",
            "bottom": f"{self.bottom}mm",
            "left": f"{self.left}mm",
        }


@dataclass(frozen=True)
class PdfOptions:
    """Page layout options for PdfRenderer.generate."""

    margins: Margins = field(default_factory=Margins)
    page_format: str = "A4"
    orientation: str = "portrait"
    scale: float = 1.0
    print_background: bool = True
    width: Optional[Union[str, float]] = None
    height: Optional[Union[str, float]] = None
    path: Optional[str] = None
    filename: Optional[str] = None
    display_header_footer: bool = False
    header_template: Optional[str] = None
    footer_template: Optional[str] = None
    prefer_css_page_size: bool = False
    # Markdown-stage passthroughs used by generate_pdf_from_markdown
    mermaid_theme: Optional[str] = None
    font_preference: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "margins", Margins.from_value(self.margins))
        orientation = (self.orientation or "portrait").lower()
        if orientation not in ORIENTATIONS:
            raise ValueError(f"Invalid orientation '{self.orientation}'. Use 'portrait' or 'landscape'.")
        object.__setattr__(self, "orientation", orientation)
        if not 0.1 <= float(self.scale) <= 2:
            raise ValueError(f"Scale must be between 0.1 and 2, got {self.scale}")
        object.__setattr__(self, "scale", float(self.scale))
        object.__setattr__(self, "font_preference", _normalize_font(self.font_preference))

    @property
    def landscape(self) -> bool:
        return self.orientation == "landscape"

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "PdfOptions":
        data = data or {}
        values = _translate_keys(data, _PDF_KEYS, cls)
        if data.get("margins") is not None:
            values["margins"] = Margins.from_value(data["margins"])
        # Falsy scale from the client means "use the default"
        if not values.get("scale"):
            values.pop("scale", None)
        if values.get("print_background") is None:
            values.pop("print_background", None)
        return cls(**values)


@dataclass
class DiagramPlaceholder:
    """A diagram block deferred during one parse pass."""

    id: str
    code: str
    token: str
    pattern: Pattern[str]

    @classmethod
    def create(cls, diagram_id: str, code: str) -> "DiagramPlaceholder":
        token = f"<!-- MERMAID_PLACEHOLDER_{diagram_id} -->"
        return cls(id=diagram_id, code=code, token=token, pattern=re.compile(re.escape(token)))


def _translate_keys(data: Mapping[str, Any], key_map: Dict[str, str], target) -> Dict[str, Any]:
    """Accept both camelCase payload keys and snake_case field names."""
    names = {f.name for f in fields(target)}
    values: Dict[str, Any] = {}
    for key, value in data.items():
        name = key_map.get(key, key)
        if name in names and name != "margins":
            values[name] = value
    return values
