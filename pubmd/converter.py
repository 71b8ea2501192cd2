#!/usr/bin/env python3
"""
Batch Markdown to PDF converter built on headless Chromium (Playwright).

Converts every Markdown file in a source directory to PDF with Mermaid
diagrams rendered to inline SVG. Also the command-line entry point, including
``--serve`` for the HTTP API.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

import asyncio
import multiprocessing
import re
import shutil
import sys
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict, List, Optional

from tqdm import tqdm

from .config import Config, DEFAULT_MERMAID_SCRIPT_URL, PDF_ENGINES, parse_margins
from .console import ConsoleLogger
from .dependencies import check_dependencies, install_browsers
from .diagram import DEFAULT_DIAGRAM_TIMEOUT_MS, DiagramRenderer
from .markdown import MarkdownRenderer
from .options import ParseOptions, PdfOptions
from .pdf import PlaywrightPdfRenderer, RasterPdfRenderer
from .pdf.playwright_engine import DEFAULT_PDF_TIMEOUT_MS
from .sandbox import BrowserSandbox
from .template import build_document

# --- Module-level worker infrastructure for ProcessPoolExecutor ---
# ProcessPoolExecutor requires picklable callables. Each worker process builds
# its own converter, so each gets its own browser and event loop.
_worker_converter = None


def _init_worker_process(converter_kwargs: dict) -> None:
    """Initializer called once per worker process. Creates a process-local converter."""
    global _worker_converter
    _worker_converter = MarkdownToPDFConverter(**converter_kwargs)


def _worker_convert_file(md_file: Path) -> tuple:
    """Top-level function executed in worker process. Converts a single file."""
    return _worker_converter._convert_single_file(md_file)


def extract_title(md_file: Path, content: str) -> str:
    """Extract the document title from markdown content.

    Preference order:
    1) First ATX H1 heading starting with '# '
    2) Setext H1 style (line followed by '===')
    3) Humanized filename stem
    """
    # 1) ATX H1: lines that start with '# ' but not '## '
    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith('# '):
            heading_text = stripped[2:].strip()
            if heading_text:
                return heading_text

    # 2) Setext H1: a non-empty line followed by a line of '=' (at least 3)
    lines = content.splitlines()
    for i in range(len(lines) - 1):
        current_line = lines[i].strip()
        underline = lines[i + 1].strip()
        if current_line and re.fullmatch(r"={3,}", underline):
            return current_line

    # 3) Fallback to humanized filename stem
    stem = md_file.stem.replace('_', ' ').replace('-', ' ').strip()
    return stem.title() if stem else md_file.stem


class MarkdownToPDFConverter:
    """Convert a directory of Markdown files to PDF."""

    def __init__(
        self,
        source_dir: str,
        output_dir: str,
        temp_dir: str,
        page_margins: str = "1in 0.75in",
        debug: bool = False,
        max_workers: int = 4,
        save_html: bool = False,
        page_format: str = "A4",
        orientation: str = "portrait",
        engine: str = "playwright",
        mermaid_theme: str = "default",
        font_preference: str = "sans",
        mermaid_script_url: str = DEFAULT_MERMAID_SCRIPT_URL,
        diagram_timeout_ms: int = DEFAULT_DIAGRAM_TIMEOUT_MS,
        pdf_timeout_ms: int = DEFAULT_PDF_TIMEOUT_MS,
        fonts_dir: Optional[str] = None,
    ):
        """Initialize the converter.

        Args:
            page_margins: CSS-style margins, 1, 2 or 4 values (e.g. "1in 0.75in")
            save_html: If True, save the intermediate HTML alongside the PDF
            engine: "playwright" (print-to-PDF) or "raster" (snapshot and paginate)
        """
        if engine not in PDF_ENGINES:
            raise ValueError(f"Invalid PDF engine '{engine}'. Available engines: {', '.join(PDF_ENGINES)}")

        self.source_dir = Path(source_dir)
        self.output_dir = Path(output_dir)
        self.temp_dir = Path(temp_dir)
        self.page_margins = page_margins
        self.debug = debug
        self.max_workers = max_workers
        self.save_html = save_html
        self.page_format = page_format
        self.orientation = orientation
        self.engine = engine
        self.mermaid_theme = mermaid_theme
        self.font_preference = font_preference
        self.mermaid_script_url = mermaid_script_url
        self.diagram_timeout_ms = diagram_timeout_ms
        self.pdf_timeout_ms = pdf_timeout_ms
        self.fonts_dir = fonts_dir
        self.logger = ConsoleLogger(debug=debug)

        # Layout options are validated once, here
        self.pdf_options = PdfOptions(
            margins=parse_margins(page_margins),
            page_format=page_format,
            orientation=orientation,
        )
        self.parse_options = ParseOptions(mermaid_theme=mermaid_theme, font_preference=font_preference)

        # Create format-specific output directories
        self.pdf_dir = self.output_dir / "pdf"
        self.html_dir = self.output_dir / "html" if self.save_html else None

        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.pdf_dir.mkdir(exist_ok=True)
        if self.html_dir:
            self.html_dir.mkdir(exist_ok=True)
        self.temp_dir.mkdir(parents=True, exist_ok=True)

        self.logger.debug(f"Using '{engine}' PDF engine, {page_format} {orientation}, margins {self.pdf_options.margins}")

    def _build_markdown_renderer(self) -> MarkdownRenderer:
        diagram_renderer = DiagramRenderer(
            script_url=self.mermaid_script_url,
            timeout_ms=self.diagram_timeout_ms,
            logger=self.logger,
            show_progress=True,
        )
        return MarkdownRenderer(diagram_renderer=diagram_renderer, logger=self.logger)

    def _render_document(self, fragment: str, title: str) -> str:
        return build_document(
            fragment,
            title=title,
            font_preference=self.font_preference,
            fonts_dir=Path(self.fonts_dir) if self.fonts_dir else None,
            logger=self.logger,
        )

    async def _generate_pdf(self, html: str, output_pdf: Path) -> bytes:
        options = PdfOptions(
            margins=self.pdf_options.margins,
            page_format=self.page_format,
            orientation=self.orientation,
            path=str(output_pdf),
            filename=output_pdf.name,
        )
        if self.engine == "raster":
            # The raster strategy draws into a page we own for the duration
            async with BrowserSandbox(logger=self.logger) as sandbox:
                async with sandbox.new_page() as page:
                    page.set_default_timeout(self.pdf_timeout_ms)
                    return await RasterPdfRenderer(page=page, logger=self.logger).generate(html, options)

        renderer = PlaywrightPdfRenderer(timeout_ms=self.pdf_timeout_ms, logger=self.logger)
        return await renderer.generate(html, options)

    async def _convert_md_to_pdf(self, md_file: Path, output_pdf: Path) -> bool:
        """Convert markdown file to PDF."""
        filename = md_file.name
        self.logger.info(f"Converting {filename}")

        with tqdm(total=4, desc=f"  {filename}", unit="step", leave=False) as pbar:
            # Step 1: Read markdown content
            pbar.set_description(f"  {filename} - Reading")
            content = md_file.read_text(encoding='utf-8')
            title = extract_title(md_file, content)
            pbar.update(1)

            # Step 2: Markdown and diagrams to HTML
            pbar.set_description(f"  {filename} - Diagrams")
            fragment = await self._build_markdown_renderer().parse(content, self.parse_options)
            pbar.update(1)

            # Step 3: Full HTML document
            pbar.set_description(f"  {filename} - HTML")
            html = self._render_document(fragment, title)
            enhanced_html_file = self.temp_dir / f"enhanced_{md_file.stem}.html"
            enhanced_html_file.write_text(html, encoding='utf-8')
            if self.html_dir:
                output_html = self.html_dir / f"{md_file.stem}.html"
                shutil.copy2(enhanced_html_file, output_html)
                self.logger.debug(f"Saved HTML to {output_html}")
            pbar.update(1)

            # Step 4: Convert to PDF
            pbar.set_description(f"  {filename} - PDF")
            await self._generate_pdf(html, output_pdf)
            pbar.update(1)

        self.logger.success(f"Converted {filename} to {output_pdf.name}")
        return True

    def _convert_single_file(self, md_file: Path) -> tuple:
        """Convert a single markdown file to PDF. Returns (status, filename).

        Status is one of: 'converted', 'failed'.
        """
        output_pdf = self.pdf_dir / f"{md_file.stem}.pdf"
        try:
            asyncio.run(self._convert_md_to_pdf(md_file, output_pdf))
            return "converted", md_file.name
        except Exception as e:
            self.logger.error(f"Error converting {md_file.name}: {e}")
            return "failed", md_file.name

    def find_markdown_files(self) -> List[Path]:
        """Markdown files to convert, README.md excluded."""
        return sorted(f for f in self.source_dir.glob("*.md") if f.name != "README.md")

    def convert_all(self, cleanup: bool = True, parallel: bool = True) -> Dict[str, int]:
        """Convert all markdown files in source directory to PDF."""
        md_files = self.find_markdown_files()

        if not md_files:
            self.logger.warning("No markdown files found in source directory.")
            return {"converted": 0, "failed": 0}

        self.logger.info("Starting markdown to PDF conversion...")
        self.logger.info(f"Source directory: {self.source_dir.absolute()}")
        self.logger.info(f"Output directory: {self.pdf_dir.absolute()}")
        self.logger.info(f"Found {len(md_files)} markdown files: {[f.name for f in md_files]}")

        if parallel and len(md_files) > 1:
            self.logger.info(f"Using parallel processing with {self.max_workers} workers")
            counts = self._convert_all_parallel(md_files)
        else:
            self.logger.info("Using sequential processing")
            counts = self._convert_all_sequential(md_files)

        self.logger.info(f"PDF files saved to: {self.pdf_dir.absolute()}")
        if cleanup:
            shutil.rmtree(self.temp_dir, ignore_errors=True)
            self.logger.debug(f"Cleaned up temporary directory: {self.temp_dir}")
        return counts

    def _get_constructor_kwargs(self) -> Dict[str, Any]:
        """Return the kwargs needed to reconstruct this converter in a worker process."""
        return {
            'source_dir': str(self.source_dir),
            'output_dir': str(self.output_dir),
            'temp_dir': str(self.temp_dir),
            'page_margins': self.page_margins,
            'debug': self.debug,
            'max_workers': 1,  # Workers don't spawn sub-workers
            'save_html': self.save_html,
            'page_format': self.page_format,
            'orientation': self.orientation,
            'engine': self.engine,
            'mermaid_theme': self.mermaid_theme,
            'font_preference': self.font_preference,
            'mermaid_script_url': self.mermaid_script_url,
            'diagram_timeout_ms': self.diagram_timeout_ms,
            'pdf_timeout_ms': self.pdf_timeout_ms,
            'fonts_dir': self.fonts_dir,
        }

    def _convert_all_parallel(self, md_files: List[Path]) -> Dict[str, int]:
        """Convert files in parallel using ProcessPoolExecutor.

        Each worker runs in its own OS process with a separate Chromium instance,
        so a browser crash in one worker cannot corrupt other workers or the main process.
        """
        counts = {"converted": 0, "failed": 0}

        # Use 'spawn' context to get clean processes (no forked Playwright state)
        mp_context = multiprocessing.get_context('spawn')

        with ProcessPoolExecutor(
            max_workers=self.max_workers,
            mp_context=mp_context,
            initializer=_init_worker_process,
            initargs=(self._get_constructor_kwargs(),)
        ) as executor:
            future_to_file = {executor.submit(_worker_convert_file, md_file): md_file for md_file in md_files}

            with tqdm(total=len(md_files), desc="Converting files", unit="file") as pbar:
                for future in as_completed(future_to_file):
                    md_file = future_to_file[future]
                    try:
                        status, filename = future.result()
                    except Exception as e:
                        self.logger.error(f"Worker process error for {md_file.name}: {e}")
                        status, filename = "failed", md_file.name
                    counts[status] += 1
                    pbar.set_postfix_str(f"{status.capitalize()}: {filename}")
                    pbar.update(1)

        self.logger.success(
            f"Parallel conversion complete: {counts['converted']} files converted, "
            f"{counts['failed']} files failed ({sum(counts.values())}/{len(md_files)} total)"
        )
        return counts

    def _convert_all_sequential(self, md_files: List[Path]) -> Dict[str, int]:
        counts = {"converted": 0, "failed": 0}

        for md_file in tqdm(md_files, desc="Converting files", unit="file"):
            status, _ = self._convert_single_file(md_file)
            counts[status] += 1

        self.logger.success(
            f"Sequential conversion complete: {counts['converted']} files converted, "
            f"{counts['failed']} files failed ({sum(counts.values())}/{len(md_files)} total)"
        )
        return counts


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Convert markdown files to PDF with Mermaid diagram support")
    parser.add_argument("--source", default=None, help="Source directory (default: from config/env/docs)")
    parser.add_argument("--output-dir", default=None, help="Output directory (default: from config/env/output). PDF files will be saved in output/pdf/ subfolder")
    parser.add_argument("--temp-dir", default=None, help="Temporary files directory (default: from config/env/temp)")
    parser.add_argument("--margins", default="1in 0.75in", help="Page margins in CSS format (default: '1in 0.75in'). Range: 0-3 inches. Use 1, 2, or 4 values. Units: in, cm, mm, pt, px")
    parser.add_argument("--page-format", default="A4", help="Paper format, e.g. A4, Letter, Legal (default: A4)")
    parser.add_argument("--orientation", default="portrait", choices=["portrait", "landscape"], help="Page orientation (default: portrait)")
    parser.add_argument("--engine", default=None, choices=list(PDF_ENGINES), help="PDF engine (default: from config/env/playwright)")
    parser.add_argument("--mermaid-theme", default="default", help="Mermaid theme: default, neutral, dark, forest, base (default: default)")
    parser.add_argument("--font", default="sans", choices=["sans", "serif"], help="Body font family (default: sans)")
    parser.add_argument("--no-cleanup", action="store_true", help="Keep temporary files")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging for detailed output")
    parser.add_argument("--max-workers", type=int, default=None, help="Maximum number of parallel workers for PDF conversion (default: 4)")
    parser.add_argument("--no-parallel", action="store_true", help="Disable parallel processing and use sequential conversion")
    parser.add_argument("--save-html", action="store_true", help="Save the intermediate HTML files alongside PDFs (output/html/)")
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API server instead of converting files")
    parser.add_argument("--host", default=None, help="Server host (default: from config/env/127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="Server port (default: from config/env/3001)")
    parser.add_argument("--install-browsers", action="store_true", help="Install Playwright Chromium and exit")

    args = parser.parse_args(argv)

    # Build config from CLI args; None values fall through to env/defaults
    cli_config = {
        "source_dir": args.source,
        "output_dir": args.output_dir,
        "temp_dir": args.temp_dir,
        "engine": args.engine,
        "max_workers": args.max_workers,
        "server_host": args.host,
        "server_port": args.port,
        "debug": True if args.debug else None,
    }
    config = Config(cli_config)

    if args.install_browsers:
        sys.exit(0 if install_browsers() else 1)

    # Check dependencies
    if not check_dependencies(check_optional=False):
        sys.exit(1)

    if args.serve:
        from .server import serve
        serve(config)
        return

    try:
        converter = MarkdownToPDFConverter(
            str(config.get_source_dir()),
            str(config.get_output_dir()),
            str(config.get_temp_dir()),
            args.margins,
            config.is_debug(),
            max_workers=config.get_max_workers(),
            save_html=args.save_html,
            page_format=args.page_format,
            orientation=args.orientation,
            engine=config.get_engine(),
            mermaid_theme=args.mermaid_theme,
            font_preference=args.font,
            mermaid_script_url=config.get_mermaid_script_url(),
            diagram_timeout_ms=config.get_diagram_timeout_ms(),
            pdf_timeout_ms=config.get_pdf_timeout_ms(),
            fonts_dir=str(config.get_fonts_dir()) if config.get_fonts_dir() else None,
        )
    except ValueError as e:
        ConsoleLogger().error(str(e))
        sys.exit(2)

    counts = converter.convert_all(cleanup=not args.no_cleanup, parallel=not args.no_parallel)
    if counts["failed"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
