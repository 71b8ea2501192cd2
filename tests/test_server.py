import pytest
from fastapi.testclient import TestClient

from pubmd.config import Config
from pubmd.errors import PdfGenerationError, PdfTimeoutError
from pubmd.options import Margins
from pubmd.server import create_app


class FakeService:
    def __init__(self, error=None):
        self.error = error
        self.markdown_calls = []
        self.html_calls = []

    async def generate_pdf_from_markdown(self, markdown_text, options=None, parse_options=None):
        self.markdown_calls.append((markdown_text, options, parse_options))
        if self.error is not None:
            raise self.error
        return b"%PDF-1.4 markdown"

    async def generate_pdf_from_html(self, html, options=None):
        self.html_calls.append((html, options))
        if self.error is not None:
            raise self.error
        return b"%PDF-1.4 html"


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.delenv("PUBMD_MAX_CONCURRENT_JOBS", raising=False)
    return Config(env_file=str(tmp_path / "missing.env"))


def client_for(service, config):
    return TestClient(create_app(service=service, config=config))


def test_index(config):
    response = client_for(FakeService(), config).get("/")
    assert response.status_code == 200
    assert response.text == "PubMD Core API Server is running!"


def test_markdown_to_pdf_defaults(config):
    service = FakeService()
    response = client_for(service, config).post("/api/generate-pdf-from-markdown", json={"markdown": "# Hi"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == 'attachment; filename="document_from_md.pdf"'
    assert response.content == b"%PDF-1.4 markdown"

    markdown_text, options, parse_options = service.markdown_calls[0]
    assert markdown_text == "# Hi"
    assert options.margins == Margins(20, 20, 20, 20)
    assert options.page_format == "A4"
    assert parse_options.mermaid_theme == "default"
    assert parse_options.font_preference == "sans"


def test_markdown_client_options(config):
    service = FakeService()
    response = client_for(service, config).post("/api/generate-pdf-from-markdown", json={
        "markdown": "x",
        "pdfOptions": {
            "pageFormat": "letter",
            "orientation": "landscape",
            "margins": {"top": 5, "right": 6, "bottom": 7, "left": 8},
            "mermaidTheme": "dark",
            "filename": "notes.pdf",
        },
        "fontPreference": "serif",
        "markdownOptions": {"breaks": False},
    })

    assert response.status_code == 200
    assert response.headers["content-disposition"] == 'attachment; filename="notes.pdf"'
    _, options, parse_options = service.markdown_calls[0]
    assert options.landscape is True
    assert options.margins == Margins(5, 6, 7, 8)
    assert parse_options.mermaid_theme == "dark"
    assert parse_options.font_preference == "serif"
    assert parse_options.breaks is False


def test_html_to_pdf_defaults(config):
    service = FakeService()
    response = client_for(service, config).post("/api/generate-pdf", json={"html": "<p>x</p>"})

    assert response.status_code == 200
    assert response.headers["content-disposition"] == 'attachment; filename="document_from_html.pdf"'
    html, options = service.html_calls[0]
    assert html == "<p>x</p>"
    assert options.margins == Margins(15, 15, 15, 15)


@pytest.mark.parametrize("path, body", [
    ("/api/generate-pdf-from-markdown", {}),
    ("/api/generate-pdf-from-markdown", {"markdown": ""}),
    ("/api/generate-pdf", {"options": {}}),
])
def test_missing_content(config, path, body):
    service = FakeService()
    response = client_for(service, config).post(path, json=body)
    assert response.status_code == 400
    assert response.text.startswith("Missing")
    assert service.markdown_calls == [] and service.html_calls == []


def test_margins_with_units_are_accepted(config):
    service = FakeService()
    response = client_for(service, config).post("/api/generate-pdf", json={
        "html": "<p>x</p>",
        "options": {"margins": {"top": "10mm", "right": "1in", "bottom": "10mm", "left": "1in"}},
    })
    assert response.status_code == 200
    _, options = service.html_calls[0]
    assert options.margins == Margins(10.0, 25.4, 10.0, 25.4)


def test_invalid_options(config):
    response = client_for(FakeService(), config).post(
        "/api/generate-pdf", json={"html": "<p>x</p>", "options": {"orientation": "sideways"}}
    )
    assert response.status_code == 400


@pytest.mark.parametrize("error, status", [
    (PdfTimeoutError("Playwright timed out"), 504),
    (PdfGenerationError("printer on fire"), 500),
    (RuntimeError("unexpected"), 500),
])
def test_error_status_codes(config, error, status):
    client = client_for(FakeService(error=error), config)
    for path, body in (("/api/generate-pdf-from-markdown", {"markdown": "x"}), ("/api/generate-pdf", {"html": "x"})):
        response = client.post(path, json=body)
        assert response.status_code == status
        assert response.headers["content-type"].startswith("text/plain")
        assert str(error) in response.text


def test_unsafe_filename_is_cleaned(config):
    response = client_for(FakeService(), config).post(
        "/api/generate-pdf", json={"html": "x", "options": {"filename": 'a"b/c.pdf'}}
    )
    assert response.headers["content-disposition"] == 'attachment; filename="abc.pdf"'
