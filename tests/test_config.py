import os

import pytest

from pubmd.config import Config, margin_to_mm, parse_margins
from pubmd.options import Margins


@pytest.fixture
def no_env(tmp_path, monkeypatch):
    for key in ("PUBMD_SERVER_PORT", "PUBMD_ENGINE", "PUBMD_DEBUG", "PUBMD_MAX_CONCURRENT_JOBS"):
        monkeypatch.delenv(key, raising=False)
    return str(tmp_path / "missing.env")


@pytest.mark.parametrize("value, expected", [
    ("1in", 25.4),
    ("1", 25.4),
    ("2.5cm", 25.0),
    ("10mm", 10.0),
    ("72pt", 25.4),
    ("96px", 25.4),
    ("0", 0.0),
])
def test_margin_units(value, expected):
    assert margin_to_mm(value) == pytest.approx(expected)


@pytest.mark.parametrize("value, message", [
    ("-1in", "negative"),
    ("4in", "too large"),
    ("1furlong", "Invalid margin format"),
])
def test_margin_rejects(value, message):
    with pytest.raises(ValueError, match=message):
        margin_to_mm(value)


def test_parse_margins_one_two_four_values():
    assert parse_margins("10mm") == Margins(10, 10, 10, 10)
    assert parse_margins("1in 0.75in") == Margins(25.4, 19.05, 25.4, 19.05)
    assert parse_margins("1mm 2mm 3mm 4mm") == Margins(1, 2, 3, 4)


def test_parse_margins_three_values_rejected():
    with pytest.raises(ValueError, match="1, 2, or 4"):
        parse_margins("1mm 2mm 3mm")


def test_defaults(no_env):
    config = Config(env_file=no_env)
    assert config.get_server_port() == 3001
    assert config.get_engine() == "playwright"
    assert config.get_diagram_timeout_ms() == 15000
    assert config.get_pdf_timeout_ms() == 30000
    assert config.get_mermaid_script_url().endswith("mermaid@11.6.0/dist/mermaid.min.js")
    assert config.get_fonts_dir() is None
    assert config.is_debug() is False


def test_environment_then_cli(no_env, monkeypatch):
    monkeypatch.setenv("PUBMD_SERVER_PORT", "4000")
    monkeypatch.setenv("PUBMD_DEBUG", "true")
    assert Config(env_file=no_env).get_server_port() == 4000
    assert Config(env_file=no_env).is_debug() is True
    assert Config({"server_port": 5000, "engine": None}, env_file=no_env).get_server_port() == 5000


def test_dotenv_file(tmp_path, monkeypatch):
    monkeypatch.delenv("PUBMD_MAX_CONCURRENT_JOBS", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("PUBMD_MAX_CONCURRENT_JOBS=7\n")
    try:
        assert Config(env_file=str(env_file)).get_max_concurrent_jobs() == 7
    finally:
        os.environ.pop("PUBMD_MAX_CONCURRENT_JOBS", None)


def test_invalid_values(no_env, monkeypatch):
    with pytest.raises(ValueError, match="Invalid PDF engine"):
        Config({"engine": "wkhtmltopdf"}, env_file=no_env).get_engine()
    monkeypatch.setenv("PUBMD_SERVER_PORT", "eighty")
    with pytest.raises(ValueError, match="integer"):
        Config(env_file=no_env).get_server_port()
