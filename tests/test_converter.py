from pathlib import Path

import pytest

from pubmd.converter import MarkdownToPDFConverter, extract_title, main


@pytest.fixture
def converter(tmp_path):
    source = tmp_path / "docs"
    source.mkdir()
    return MarkdownToPDFConverter(str(source), str(tmp_path / "output"), str(tmp_path / "temp"))


@pytest.mark.parametrize("content, expected", [
    ("intro\n# Main Title\n## Sub", "Main Title"),
    ("Setext Title\n============\n\ntext", "Setext Title"),
    ("no heading here", "My Notes File"),
])
def test_extract_title(content, expected):
    assert extract_title(Path("my_notes-file.md"), content) == expected


def test_output_directories_created(converter):
    assert converter.pdf_dir.is_dir()
    assert converter.temp_dir.is_dir()
    assert converter.html_dir is None


def test_invalid_settings_rejected(tmp_path):
    with pytest.raises(ValueError, match="too large"):
        MarkdownToPDFConverter(str(tmp_path), str(tmp_path / "o"), str(tmp_path / "t"), page_margins="5in")
    with pytest.raises(ValueError, match="Invalid PDF engine"):
        MarkdownToPDFConverter(str(tmp_path), str(tmp_path / "o"), str(tmp_path / "t"), engine="wkhtmltopdf")


def test_readme_is_skipped(converter):
    for name in ("README.md", "b.md", "a.md", "notes.txt"):
        (converter.source_dir / name).write_text("# x")
    assert [f.name for f in converter.find_markdown_files()] == ["a.md", "b.md"]


def test_no_files(converter):
    assert converter.convert_all(parallel=False) == {"converted": 0, "failed": 0}


def test_sequential_conversion_counts(converter, monkeypatch):
    (converter.source_dir / "good.md").write_text("# Good")
    (converter.source_dir / "bad.md").write_text("# Bad")

    async def fake_convert(md_file, output_pdf):
        if md_file.stem == "bad":
            raise RuntimeError("diagram sandbox exploded")
        output_pdf.write_bytes(b"%PDF-1.4")
        return True

    monkeypatch.setattr(converter, "_convert_md_to_pdf", fake_convert)
    counts = converter.convert_all(cleanup=True, parallel=False)

    assert counts == {"converted": 1, "failed": 1}
    assert (converter.pdf_dir / "good.pdf").exists()
    assert not converter.temp_dir.exists()


def test_batch_runs_show_diagram_progress(converter):
    assert converter._build_markdown_renderer().diagram_renderer.show_progress is True


def test_worker_kwargs_rebuild_equivalent_converter(converter):
    kwargs = converter._get_constructor_kwargs()
    clone = MarkdownToPDFConverter(**kwargs)
    assert clone.pdf_options == converter.pdf_options
    assert clone.max_workers == 1


def test_install_browsers_flag(monkeypatch):
    monkeypatch.setattr("pubmd.converter.install_browsers", lambda: True)
    with pytest.raises(SystemExit) as info:
        main(["--install-browsers"])
    assert info.value.code == 0
