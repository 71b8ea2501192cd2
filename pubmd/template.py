"""
Full HTML document wrapper used for PDF output.

Wraps a rendered Markdown fragment with print styling and, when the DejaVu
fonts can be found, embeds them as base64 @font-face rules so the PDF does
not depend on fonts installed on the rendering host.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

import base64
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple

from .console import ConsoleLogger, get_logger
from .escaper import escape_html

FONT_FILES = {
    "sans": ("DejaVu Sans PDF", "DejaVuSans.ttf"),
    "serif": ("DejaVu Serif PDF", "DejaVuSerif.ttf"),
}

# Searched in order when no fonts directory is configured
DEFAULT_FONT_DIRS = (
    Path(__file__).parent / "assets" / "fonts",
    Path("/usr/share/fonts/truetype/dejavu"),
    Path("/usr/share/fonts/dejavu"),
    Path("/usr/share/fonts/TTF"),
)

PRINT_CSS = """
        * {
            box-sizing: border-box;
        }

        body {
            margin: 0;
            padding: 0;
            line-height: 1.4;
            color: #333;
        }

        h1, h2, h3, h4, h5, h6 {
            color: #2c3e50;
            margin-top: 0.8em;
            margin-bottom: 0.3em;
            font-weight: 600;
            page-break-inside: avoid;
            break-inside: avoid;
        }

        h1 {
            border-bottom: 2px solid #3498db;
            padding-bottom: 0.2em;
        }

        h2 {
            border-bottom: 1px solid #bdc3c7;
            padding-bottom: 0.1em;
        }

        h1, h2, h3 {
            page-break-after: avoid;
            break-after: avoid;
        }

        table { border-collapse: collapse; width: 100%; margin-bottom: 1em; }
        th, td { border: 1px solid #ccc; padding: 0.5em; text-align: left; }
        th { background-color: #f0f0f0; }
        pre { background-color: #f5f5f5; padding: 1em; overflow-x: auto; white-space: pre-wrap; word-wrap: break-word; }
        code:not(pre code) { background-color: #f0f0f0; padding: 0.2em 0.4em; border-radius: 3px; }
        blockquote { border-left: 3px solid #ccc; padding-left: 1em; margin-left: 0; }
        img { max-width: 100%; height: auto; }
        ul, ol { padding-left: 20pt; margin-left: 0; }
        li { margin-bottom: 5px; }

        p, li {
            orphans: 3;
            widows: 3;
        }

        /* Prevent large elements from breaking across pages */
        pre, blockquote, table, img, .mermaid {
            page-break-inside: avoid;
            break-inside: avoid;
        }

        .mermaid {
            text-align: center;
            margin: 0.5em 0;
        }

        .mermaid svg {
            max-width: 100%;
            height: auto;
        }

        .diagram-error {
            color: #c0392b;
            border: 1px solid #e6b0aa;
            background-color: #fdedec;
        }

        .task-list-item {
            list-style-type: none;
        }
"""


@lru_cache(maxsize=8)
def _load_fonts(fonts_dir: Optional[str]) -> Tuple[Tuple[str, str], ...]:
    """Return ((family, base64 data), ...) for every DejaVu font found."""
    search = (Path(fonts_dir),) if fonts_dir else DEFAULT_FONT_DIRS
    loaded = []
    for family, filename in FONT_FILES.values():
        for directory in search:
            font_path = directory / filename
            if font_path.is_file():
                loaded.append((family, base64.b64encode(font_path.read_bytes()).decode("ascii")))
                break
    return tuple(loaded)


def font_face_rules(fonts_dir: Optional[Path] = None) -> Dict[str, str]:
    """Map font family -> @font-face rule for each embeddable DejaVu font."""
    return {
        family: (
            "@font-face {\n"
            f"            font-family: '{family}';\n"
            f"            src: url(data:font/ttf;base64,{data}) format('truetype');\n"
            "        }"
        )
        for family, data in _load_fonts(str(fonts_dir) if fonts_dir else None)
    }


def build_document(
    fragment: str,
    title: str = "PDF Document",
    font_preference: Optional[str] = "sans",
    fonts_dir: Optional[Path] = None,
    logger: Optional[ConsoleLogger] = None,
) -> str:
    """Wrap an HTML fragment in a complete, print-styled document."""
    logger = logger or get_logger()
    preference = font_preference if font_preference in FONT_FILES else "sans"
    generic = "serif" if preference == "serif" else "sans-serif"

    rules = font_face_rules(fonts_dir)
    preferred_family = FONT_FILES[preference][0]
    if preferred_family in rules:
        body_font = f"'{preferred_family}', {generic}"
    else:
        logger.warning("DejaVu fonts not available for PDF embedding. PDFs may use default fonts.")
        body_font = generic

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{escape_html(title, encode=True)}</title>
    <style>
        {chr(10).join(rules.values())}
        body {{ font-family: {body_font}; }}
{PRINT_CSS}
    </style>
</head>
<body>
{fragment}
</body>
</html>
"""
