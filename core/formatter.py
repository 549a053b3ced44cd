"""
formatter.py -- Renders a certificate Report or decoded text for display.

Rows arrive as data (core/models.py ReportRow); every output format is a
different view of the same rows, so decoding never changes with the format.
"""

import csv
import io
import json
import os
import sys
from dataclasses import asdict
from typing import Optional, Union

from .models import Report, TextView

LABEL_WIDTH = 14
VALUE_WIDTH = 96
INDENT = "  "
ELLIPSIS = "…"

FORMATS = ("terminal", "tsv", "markdown", "json")

# ---------------------------------------------------------------------------
# ANSI color control
# ---------------------------------------------------------------------------


def _use_color() -> bool:
    """Color is on for a TTY unless NO_COLOR is set; FORCE_COLOR wins over the TTY check.

    disable_color() overrides this (https://no-color.org).
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


_color_enabled: Optional[bool] = None  # None = auto-detect


def disable_color() -> None:
    """Used by --no-color."""
    global _color_enabled
    _color_enabled = False


def _color_active() -> bool:
    if _color_enabled is not None:
        return _color_enabled
    return _use_color()


def _reset() -> str:
    return "\033[0m" if _color_active() else ""


def _header_style() -> str:
    # bold white on blue
    return "\033[1;97;44m" if _color_active() else ""


def _dim() -> str:
    return "\033[2m" if _color_active() else ""


# ---------------------------------------------------------------------------
# Layout helpers
# ---------------------------------------------------------------------------


def truncate(text: str, width: int) -> str:
    """Cut text to width characters, marking the cut with a trailing ellipsis."""
    if len(text) <= width:
        return text
    return text[: width - 1] + ELLIPSIS


def _cell(text: str, width: int) -> str:
    return " " + truncate(text, width).ljust(width) + " "


def _label(label: str, indent: int) -> str:
    return INDENT * indent + label


# ---------------------------------------------------------------------------
# Terminal table
# ---------------------------------------------------------------------------


def render_table(report: Report) -> str:
    """Fixed-width two-column table: header with the leaf CN, a rule, then rows."""
    style = _header_style()
    reset = _reset()
    dim = _dim()

    lines = [
        f"{style}{_cell('', LABEL_WIDTH)}{_cell(report.title, VALUE_WIDTH)}{reset}",
        f"{dim}{'─' * (LABEL_WIDTH + VALUE_WIDTH + 4)}{reset}",
    ]
    for row in report.rows:
        line = _cell(_label(row.label, row.indent), LABEL_WIDTH) + _cell(row.value, VALUE_WIDTH)
        lines.append(line.rstrip())
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Machine-readable exports
# ---------------------------------------------------------------------------


def to_tsv(report: Report) -> str:
    """One label<TAB>value line per row. No truncation, no header."""
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter="\t", lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    for row in report.rows:
        writer.writerow([_label(row.label, row.indent), row.value])
    return buf.getvalue()


def to_markdown(report: Report) -> str:
    """Two-column Markdown table titled with the leaf CN."""
    lines = [f"| | {_md_escape(report.title)} |", "|---|---|"]
    for row in report.rows:
        label = "&nbsp;&nbsp;" * row.indent + _md_escape(row.label)
        lines.append(f"| {label} | {_md_escape(row.value)} |")
    return "\n".join(lines) + "\n"


def _md_escape(text: str) -> str:
    # Escape pipe characters so free text cannot break the table layout.
    return text.replace("|", "\\|")


def to_json(report: Report) -> str:
    return json.dumps(asdict(report), indent=2, ensure_ascii=False) + "\n"


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


_RENDERERS = {
    "terminal": render_table,
    "tsv": to_tsv,
    "markdown": to_markdown,
    "json": to_json,
}


def render(view: Union[Report, TextView], fmt: str = "terminal") -> str:
    """Render a decoded view. Text views pass through except for json."""
    if fmt not in _RENDERERS:
        raise ValueError(f"unknown output format: {fmt}")
    if isinstance(view, TextView):
        if fmt == "json":
            return json.dumps({"text": view.text}, indent=2, ensure_ascii=False) + "\n"
        return view.text
    return _RENDERERS[fmt](view)
