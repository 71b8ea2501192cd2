import base64

from pubmd.template import build_document


def test_wraps_fragment_with_escaped_title(tmp_path, logger):
    html = build_document("<p>body</p>", title="A & B <draft>", fonts_dir=tmp_path, logger=logger)
    assert html.startswith("<!DOCTYPE html>")
    assert "<title>A &amp; B &lt;draft&gt;</title>" in html
    assert "<p>body</p>" in html
    assert "break-inside: avoid" in html


def test_missing_fonts_fall_back_with_warning(tmp_path, logger):
    html = build_document("<p>x</p>", fonts_dir=tmp_path, logger=logger)
    assert "@font-face" not in html
    assert "body { font-family: sans-serif; }" in html
    assert any("DejaVu" in message for message in logger.messages("WARNING"))


def test_fonts_are_embedded(tmp_path, logger):
    (tmp_path / "DejaVuSans.ttf").write_bytes(b"sans-font")
    (tmp_path / "DejaVuSerif.ttf").write_bytes(b"serif-font")

    html = build_document("<p>x</p>", font_preference="serif", fonts_dir=tmp_path, logger=logger)

    assert base64.b64encode(b"sans-font").decode() in html
    assert base64.b64encode(b"serif-font").decode() in html
    assert "font-family: 'DejaVu Serif PDF', serif;" in html
    assert logger.messages("WARNING") == []
