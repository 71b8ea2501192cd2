"""
Mermaid diagram rendering to standalone SVG inside headless Chromium.

Each diagram gets its own browser context so theme and security settings
cannot leak between diagrams; a batch shares one browser process.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

import json
from dataclasses import dataclass
from pathlib import Path
from time import monotonic
from typing import Any, Dict, List, Optional, Sequence, Tuple

from playwright.async_api import Browser, TimeoutError as PlaywrightTimeoutError
from tqdm import tqdm

from .config import DEFAULT_MERMAID_SCRIPT_URL
from .console import ConsoleLogger, get_logger
from .errors import DiagramRenderError, SandboxUnavailableError
from .escaper import escape_html
from .options import ParseOptions
from .sandbox import BrowserSandbox, isolated_page

DEFAULT_DIAGRAM_TIMEOUT_MS = 15000

FONT_FAMILIES = {
    "sans": "'DejaVu Sans', Arial, Helvetica, sans-serif",
    "serif": "'DejaVu Serif', Georgia, 'Times New Roman', serif",
}

# Wrapper styling per named theme; 'base' is driven by CSS variables instead
THEME_CSS = {
    "default": ".mermaid-theme-default { background: #ffffff; }",
    "neutral": ".mermaid-theme-neutral { background: #ffffff; }",
    "forest": ".mermaid-theme-forest { background: #ffffff; }",
    "dark": ".mermaid-theme-dark { background: #1e1e1e; color: #e0e0e0; }",
    "null": "",
    "base": (
        ".mermaid-theme-base {"
        " background: var(--mermaid-background, #ffffff);"
        " color: var(--mermaid-primary-text-color, #333333); }"
    ),
}


@dataclass(frozen=True)
class MermaidThemeConfig:
    """Per-call Mermaid configuration, resolved from ParseOptions."""

    theme: str = "default"
    security_level: str = "loose"
    theme_variables: Optional[Dict[str, str]] = None
    font_family: Optional[str] = None

    @classmethod
    def from_parse_options(cls, options: ParseOptions) -> "MermaidThemeConfig":
        return cls(
            theme=options.effective_theme,
            security_level=options.mermaid_security_level,
            theme_variables=options.effective_theme_variables,
            font_family=FONT_FAMILIES.get(options.font_preference) if options.font_preference else None,
        )

    def initialize_config(self) -> Dict[str, Any]:
        """Build the object passed to mermaid.initialize (a new dict every call)."""
        config: Dict[str, Any] = {
            "startOnLoad": False,
            "theme": self.theme,
            "securityLevel": self.security_level,
            "dompurifyConfig": {"USE_PROFILES": {"html": True, "svg": True}},
            "flowchart": {"htmlLabels": False},
            "sequence": {"htmlLabels": False},
            "state": {"htmlLabels": False},
        }
        if self.font_family:
            config["fontFamily"] = self.font_family
            config["themeVariables"] = {"fontFamily": self.font_family}
        return config


@dataclass
class DiagramResult:
    """Outcome of rendering one diagram."""

    diagram_id: str
    svg: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.svg is not None and self.error is None


def error_svg(diagram_id: str, message: str) -> str:
    """Visible placeholder SVG used when a diagram cannot be rendered."""
    text = escape_html(f"Error rendering diagram {diagram_id}: {message}", encode=True)
    return (
        '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 600 40" width="600" height="40" '
        f'role="img" data-diagram-id="{escape_html(diagram_id, encode=True)}">'
        f'<text x="4" y="25" fill="red" font-family="sans-serif" font-size="12">{text}</text>'
        '</svg>'
    )


def _css_variable_to_key(name: str) -> str:
    """'--mermaid-primary-color' -> 'primaryColor'."""
    bare = name.lstrip('-')
    if bare.startswith('mermaid-'):
        bare = bare[len('mermaid-'):]
    head, *rest = bare.split('-')
    return head + ''.join(part.capitalize() for part in rest)


class DiagramRenderer:
    """Render Mermaid source to SVG markup using a headless browser page."""

    def __init__(
        self,
        script_url: str = DEFAULT_MERMAID_SCRIPT_URL,
        timeout_ms: int = DEFAULT_DIAGRAM_TIMEOUT_MS,
        logger: Optional[ConsoleLogger] = None,
        sandbox_factory=BrowserSandbox,
        show_progress: bool = False,
    ):
        self.script_url = script_url
        self.timeout_ms = timeout_ms
        self.logger = logger or get_logger()
        self.sandbox_factory = sandbox_factory
        self.show_progress = show_progress
        self._script_tag: Optional[str] = None

    async def render(
        self,
        diagram_source: str,
        diagram_id: str,
        theme_config: Optional[MermaidThemeConfig] = None,
        browser: Optional[Browser] = None,
    ) -> str:
        """Render one diagram and return SVG markup.

        Never raises: any failure (including failing to launch a browser when
        none is supplied) yields error_svg().
        """
        theme_config = theme_config or MermaidThemeConfig()
        try:
            if browser is not None:
                return await self.render_in_browser(browser, diagram_source, diagram_id, theme_config)
            async with self.sandbox_factory(logger=self.logger) as sandbox:
                return await self.render_in_browser(sandbox.browser, diagram_source, diagram_id, theme_config)
        except Exception as e:
            self.logger.error(f"Mermaid rendering failed for diagram {diagram_id}: {e}")
            return error_svg(diagram_id, str(e))

    async def render_batch(
        self,
        items: Sequence[Tuple[str, str]],
        theme_config: Optional[MermaidThemeConfig] = None,
    ) -> List[DiagramResult]:
        """Render ``(diagram_id, source)`` pairs in order with one shared browser.

        Per-diagram failures are captured in the results. Raises
        SandboxUnavailableError only when the browser cannot be launched.
        """
        theme_config = theme_config or MermaidThemeConfig()
        results: List[DiagramResult] = []
        if not items:
            return results

        async with self.sandbox_factory(logger=self.logger) as sandbox:
            iterator = tqdm(items, desc="  Mermaid diagrams", unit="diagram", leave=False) if self.show_progress else items
            for diagram_id, source in iterator:
                self.logger.debug(
                    f"Rendering Mermaid diagram {diagram_id} (theme: {theme_config.theme}, code: {source[:50]!r})"
                )
                try:
                    svg = await self.render_in_browser(sandbox.browser, source, diagram_id, theme_config)
                    results.append(DiagramResult(diagram_id, svg=svg))
                except SandboxUnavailableError:
                    raise
                except Exception as e:
                    self.logger.error(f"Mermaid rendering failed for diagram {diagram_id}: {e}")
                    results.append(DiagramResult(diagram_id, error=str(e)))
        return results

    async def render_in_browser(
        self,
        browser: Browser,
        diagram_source: str,
        diagram_id: str,
        theme_config: MermaidThemeConfig,
    ) -> str:
        """Render in a fresh context of ``browser``; raises DiagramRenderError."""
        container_id = f"mermaid-container-{diagram_id}"
        html = self.build_page(diagram_source, diagram_id, theme_config)

        try:
            async with isolated_page(browser) as page:
                # One budget covers loading the page and Mermaid finishing
                deadline = monotonic() + self.timeout_ms / 1000
                await page.set_content(html, wait_until="load", timeout=self.timeout_ms)
                remaining_ms = max(1, int((deadline - monotonic()) * 1000))
                await page.wait_for_function(
                    "(id) => { const c = document.getElementById(id);"
                    " return !!c && c.hasAttribute('data-render-status'); }",
                    arg=container_id,
                    timeout=remaining_ms,
                )
                status = await page.get_attribute(f"#{container_id}", "data-render-status")
                if status != "done":
                    error = await page.get_attribute(f"#{container_id}", "data-render-error")
                    raise DiagramRenderError(diagram_id, error or "Mermaid reported an unknown error")

                svg = await page.evaluate(
                    "(id) => { const svg = document.querySelector('#' + id + ' svg');"
                    " return svg ? svg.outerHTML : null; }",
                    container_id,
                )
                if not svg:
                    raise DiagramRenderError(diagram_id, "Mermaid SVG not found in page after rendering")
                return svg
        except PlaywrightTimeoutError as e:
            raise DiagramRenderError(diagram_id, f"Timed out after {self.timeout_ms}ms") from e
        except DiagramRenderError:
            raise
        except Exception as e:
            raise DiagramRenderError(diagram_id, str(e)) from e

    def _get_script_tag(self) -> str:
        """Script tag for the Mermaid library; local files are inlined."""
        if self._script_tag is None:
            local = Path(self.script_url)
            if not self.script_url.startswith(("http://", "https://")) and local.is_file():
                self._script_tag = f"<script>{local.read_text(encoding='utf-8')}</script>"
            else:
                self._script_tag = f'<script src="{escape_html(self.script_url, encode=True)}"></script>'
        return self._script_tag

    def build_page(self, diagram_source: str, diagram_id: str, theme_config: MermaidThemeConfig) -> str:
        """Build the standalone HTML document that renders one diagram."""
        container_id = f"mermaid-container-{diagram_id}"
        wrapper_id = f"mermaid-wrapper-{diagram_id}"
        theme = theme_config.theme

        styles = [THEME_CSS.get(theme, "")]
        variable_names: List[str] = []
        if theme == "base" and theme_config.theme_variables:
            css_vars = []
            for name, value in theme_config.theme_variables.items():
                var_name = name if name.startswith('--') else f"--{name}"
                variable_names.append(var_name)
                css_vars.append(f"{var_name}: {value};")
            styles.insert(0, ":root { " + " ".join(css_vars) + " }")
        if theme_config.font_family:
            styles.append(f"body {{ font-family: {theme_config.font_family}; }}")

        variable_keys = {name: _css_variable_to_key(name) for name in variable_names}

        return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <style>
        body {{ margin: 0; padding: 10px; }}
        {' '.join(s for s in styles if s)}
    </style>
    {self._get_script_tag()}
</head>
<body>
    <div id="{wrapper_id}" class="mermaid-theme-{theme}">
        <div id="{container_id}" class="mermaid">{escape_html(diagram_source, encode=True)}</div>
    </div>
    <script>
        (async () => {{
            const container = document.getElementById({json.dumps(container_id)});
            const wrapper = document.getElementById({json.dumps(wrapper_id)});
            try {{
                if (typeof mermaid === 'undefined') {{
                    throw new Error('Mermaid library not loaded on page.');
                }}
                const config = {json.dumps(theme_config.initialize_config())};
                const variableKeys = {json.dumps(variable_keys)};
                if (config.theme === 'base') {{
                    const computed = window.getComputedStyle(wrapper);
                    const themeVariables = Object.assign({{}}, config.themeVariables || {{}});
                    for (const [cssName, key] of Object.entries(variableKeys)) {{
                        const value = computed.getPropertyValue(cssName).trim();
                        if (value) {{ themeVariables[key] = value; }}
                    }}
                    config.themeVariables = themeVariables;
                }}
                mermaid.initialize(config);
                const source = container.textContent;
                const result = await mermaid.render({json.dumps('svg-' + diagram_id)}, source);
                container.innerHTML = result.svg;
                container.setAttribute('data-render-status', 'done');
            }} catch (err) {{
                container.setAttribute('data-render-error', String((err && err.message) || err));
                container.setAttribute('data-render-status', 'error');
            }}
        }})();
    </script>
</body>
</html>
"""
