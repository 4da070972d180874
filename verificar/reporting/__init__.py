"""Verificar reporting modules."""

from .formatting import REPORT_FORMATS, suggested_filename
from .html_report import export_html
from .json_report import export_json, load_json_report
from .text_report import export_text


def render_report(fmt, summary, violations, document_title, now=None) -> bytes:
    """Render one of `REPORT_FORMATS` as UTF-8 bytes."""
    if fmt == "json":
        return export_json(summary, violations, document_title, now)
    if fmt == "html":
        return export_html(summary, violations, document_title, now).encode("utf-8", errors="replace")
    if fmt == "text":
        return export_text(summary, violations, document_title, now).encode("utf-8", errors="replace")
    raise ValueError(f"Unknown report format '{fmt}'; expected one of {', '.join(REPORT_FORMATS)}")


__all__ = [
    "REPORT_FORMATS",
    "export_html",
    "export_json",
    "export_text",
    "load_json_report",
    "render_report",
    "suggested_filename",
]
