"""
HTTP API for PDF generation.

    GET  /                                  health text
    POST /api/generate-pdf-from-markdown    {markdown, markdownOptions, pdfOptions, fontPreference}
    POST /api/generate-pdf                  {html, options}

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

import asyncio
import re
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel

from .config import Config
from .console import get_logger
from .errors import PdfTimeoutError
from .options import Margins, ParseOptions, PdfOptions
from .service import PdfService, create_service

MARKDOWN_DEFAULT_FILENAME = "document_from_md.pdf"
HTML_DEFAULT_FILENAME = "document_from_html.pdf"
MARKDOWN_DEFAULT_MARGIN_MM = 20
HTML_DEFAULT_MARGIN_MM = 15


class MarkdownPdfRequest(BaseModel):
    markdown: Optional[str] = None
    markdownOptions: Optional[Dict[str, Any]] = None
    pdfOptions: Optional[Dict[str, Any]] = None
    fontPreference: Optional[str] = None


class HtmlPdfRequest(BaseModel):
    html: Optional[str] = None
    options: Optional[Dict[str, Any]] = None


def _safe_filename(filename: Optional[str], default: str) -> str:
    """Strip characters that would break the Content-Disposition header."""
    cleaned = re.sub(r'[<>:"/\\|?*\x00-\x1F]', '', filename or '').strip()
    return cleaned or default


def _pdf_options(client: Optional[Dict[str, Any]], default_margin: float, default_filename: str) -> PdfOptions:
    client = dict(client or {})
    if not client.get("margins"):
        client["margins"] = Margins.from_value(default_margin)
    client["filename"] = _safe_filename(client.get("filename"), default_filename)
    return PdfOptions.from_dict(client)


def _pdf_response(pdf_bytes: bytes, filename: str) -> Response:
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def create_app(service: Optional[PdfService] = None, config: Optional[Config] = None) -> FastAPI:
    """Build the API application around a PdfService."""
    config = config or Config()
    logger = get_logger(config.is_debug())
    pdf_service = service or create_service(config, logger=logger)
    # Bounds the number of browser-backed conversions running at once
    jobs = asyncio.Semaphore(config.get_max_concurrent_jobs())

    app = FastAPI(
        title="PubMD Core API",
        version="1.0.0",
        description="Render Markdown (with Mermaid diagrams) and HTML to PDF.",
    )
    app.state.service = pdf_service

    @app.get("/", response_class=PlainTextResponse)
    async def index() -> str:
        return "PubMD Core API Server is running!"

    @app.post("/api/generate-pdf-from-markdown")
    async def generate_pdf_from_markdown(request: MarkdownPdfRequest):
        if not request.markdown:
            return PlainTextResponse('Missing "markdown" content in request body.', status_code=400)

        try:
            pdf_client = dict(request.pdfOptions or {})
            font = request.fontPreference or pdf_client.get("fontPreference") or "sans"
            pdf_client["fontPreference"] = font
            options = _pdf_options(pdf_client, MARKDOWN_DEFAULT_MARGIN_MM, MARKDOWN_DEFAULT_FILENAME)

            parse_client = dict(request.markdownOptions or {})
            parse_client.setdefault("mermaidTheme", pdf_client.get("mermaidTheme") or "light")
            parse_client.setdefault("fontPreference", font)
            parse_options = ParseOptions.from_dict(parse_client)
        except (TypeError, ValueError) as e:
            return PlainTextResponse(f"Invalid options: {e}", status_code=400)

        logger.info(f"Received PDF generation request from Markdown. Markdown length: {len(request.markdown)}")
        start = time.time()
        try:
            async with jobs:
                pdf_bytes = await pdf_service.generate_pdf_from_markdown(request.markdown, options, parse_options)
        except PdfTimeoutError as e:
            logger.error(f"Timed out in /api/generate-pdf-from-markdown: {e}")
            return PlainTextResponse(f"PDF generation timed out: {e}", status_code=504)
        except Exception as e:
            logger.error(f"Error in /api/generate-pdf-from-markdown: {e}")
            return PlainTextResponse(f"Error generating PDF from Markdown: {e or 'Unknown error'}", status_code=500)

        logger.success(f"PDF generated from Markdown in {(time.time() - start) * 1000:.0f}ms")
        return _pdf_response(pdf_bytes, options.filename)

    @app.post("/api/generate-pdf")
    async def generate_pdf(request: HtmlPdfRequest):
        if not request.html:
            return PlainTextResponse('Missing "html" content in request body.', status_code=400)

        try:
            options = _pdf_options(request.options, HTML_DEFAULT_MARGIN_MM, HTML_DEFAULT_FILENAME)
        except (TypeError, ValueError) as e:
            return PlainTextResponse(f"Invalid options: {e}", status_code=400)

        try:
            async with jobs:
                pdf_bytes = await pdf_service.generate_pdf_from_html(request.html, options)
        except PdfTimeoutError as e:
            logger.error(f"Timed out in /api/generate-pdf: {e}")
            return PlainTextResponse(f"PDF generation timed out: {e}", status_code=504)
        except Exception as e:
            logger.error(f"Error in /api/generate-pdf: {e}")
            return PlainTextResponse(f"Error generating PDF: {e or 'Unknown error'}", status_code=500)

        return _pdf_response(pdf_bytes, options.filename)

    return app


def serve(config: Optional[Config] = None) -> None:
    """Run the API with uvicorn on the configured host and port."""
    import uvicorn

    config = config or Config()
    logger = get_logger(config.is_debug())
    host, port = config.get_server_host(), config.get_server_port()
    logger.info(f"Server listening on http://{host}:{port}")
    uvicorn.run(create_app(config=config), host=host, port=port, log_level="debug" if config.is_debug() else "info")
