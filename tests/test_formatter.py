"""Unit tests for core/formatter.py -- table layout and export formats."""

import json
import re

import pytest

import core.formatter as formatter
from core.formatter import (
    ELLIPSIS,
    LABEL_WIDTH,
    VALUE_WIDTH,
    disable_color,
    render,
    render_table,
    to_markdown,
    to_tsv,
    truncate,
)
from core.models import Report, ReportRow, TextView


@pytest.fixture(autouse=True)
def _no_color(monkeypatch):
    # disable_color() sets module state; monkeypatch restores it afterwards.
    monkeypatch.setattr(formatter, "_color_enabled", None)
    disable_color()


def _report() -> Report:
    return Report(
        title="demo.example.com",
        rows=[
            ReportRow("Subject", "CN=demo.example.com"),
            ReportRow(),
            ReportRow("Fingerprints"),
            ReportRow("SHA-1", "AA:BB", indent=1),
        ],
    )


class TestTruncate:
    def test_short_text_unchanged(self):
        assert truncate("abc", 5) == "abc"

    def test_exact_width_unchanged(self):
        assert truncate("abcde", 5) == "abcde"

    def test_long_text_cut_with_ellipsis(self):
        assert truncate("abcdefgh", 5) == "abcd" + ELLIPSIS
        assert len(truncate("x" * 200, VALUE_WIDTH)) == VALUE_WIDTH


class TestRenderTable:
    def test_header_rule_and_rows(self):
        lines = render_table(_report()).splitlines()
        assert lines[0].strip() == "demo.example.com"
        assert set(lines[1]) == {"─"}
        assert len(lines[1]) == LABEL_WIDTH + VALUE_WIDTH + 4
        assert lines[2] == f" {'Subject'.ljust(LABEL_WIDTH)}  CN=demo.example.com"
        assert lines[3] == ""
        assert lines[5].startswith("   SHA-1")

    def test_ends_with_newline(self):
        assert render_table(_report()).endswith("\n")

    def test_long_value_truncated(self):
        report = Report(title="t", rows=[ReportRow("Trust", "x" * 300)])
        line = render_table(report).splitlines()[2]
        assert line.endswith(ELLIPSIS)
        assert "x" * (VALUE_WIDTH - 1) + ELLIPSIS in line

    def test_long_label_truncated(self):
        report = Report(title="t", rows=[ReportRow("A very long label name", "v")])
        line = render_table(report).splitlines()[2]
        assert line[1 : 1 + LABEL_WIDTH] == truncate("A very long label name", LABEL_WIDTH)

    def test_color_codes_only_when_enabled(self, monkeypatch):
        plain = render_table(_report())
        assert "\x1b[" not in plain
        monkeypatch.setattr(formatter, "_color_enabled", True)
        colored = render_table(_report())
        assert "\x1b[" in colored
        assert re.sub(r"\x1b\[[0-9;]*m", "", colored) == plain

    def test_force_color_env_when_auto(self, monkeypatch):
        monkeypatch.setattr(formatter, "_color_enabled", None)
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("FORCE_COLOR", "1")
        assert "\x1b[" in render_table(_report())

    def test_no_color_env_wins(self, monkeypatch):
        monkeypatch.setattr(formatter, "_color_enabled", None)
        monkeypatch.setenv("NO_COLOR", "1")
        monkeypatch.setenv("FORCE_COLOR", "1")
        assert "\x1b[" not in render_table(_report())


class TestExports:
    def test_tsv(self):
        assert to_tsv(_report()) == "Subject\tCN=demo.example.com\n\t\nFingerprints\t\n  SHA-1\tAA:BB\n"

    def test_tsv_not_truncated(self):
        assert "x" * 300 in to_tsv(Report(title="t", rows=[ReportRow("L", "x" * 300)]))

    def test_markdown(self):
        lines = to_markdown(_report()).splitlines()
        assert lines[0] == "| | demo.example.com |"
        assert lines[1] == "|---|---|"
        assert lines[2] == "| Subject | CN=demo.example.com |"
        assert lines[5] == "| &nbsp;&nbsp;SHA-1 | AA:BB |"

    def test_markdown_escapes_pipes(self):
        out = to_markdown(Report(title="t", rows=[ReportRow("L", "a|b")]))
        assert "a\\|b" in out

    def test_json(self):
        data = json.loads(render(_report(), "json"))
        assert data["title"] == "demo.example.com"
        assert data["rows"][3] == {"label": "SHA-1", "value": "AA:BB", "indent": 1}


class TestRender:
    def test_text_view_passes_through(self):
        view = TextView('{\n  "name": "demo"\n}\n')
        for fmt in ("terminal", "tsv", "markdown"):
            assert render(view, fmt) == view.text

    def test_text_view_json(self):
        assert json.loads(render(TextView("hello\n"), "json")) == {"text": "hello\n"}

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            render(_report(), "xml")

    def test_default_is_terminal(self):
        assert render(_report()) == render_table(_report())
