"""Self-contained HTML export of validation results.

The page has no external resources: styling is inline and every piece of text
that came from the document or the engine goes through `escape_html`.
"""

from __future__ import annotations

import html
from datetime import datetime
from typing import List, Optional, Sequence

from verificar.core.models import ValidationSummary, ViolationItem
from verificar.reporting.formatting import (
    format_duration,
    format_report_date,
    location_label,
    pass_rate_percent,
    report_time,
    status_label,
)

STATUS_COLORS = {
    "Conformant": "#388e3c",
    "Non-conformant": "#d32f2f",
}

STYLESHEET = """\
        body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; margin: 40px; color: #333; line-height: 1.6; }
        h1 { color: #1a1a1a; border-bottom: 2px solid #eee; padding-bottom: 8px; }
        h2 { color: #444; margin-top: 32px; }
        .summary-table { border-collapse: collapse; width: 100%; max-width: 600px; margin: 16px 0; }
        .summary-table td { padding: 8px 16px; border: 1px solid #ddd; }
        .summary-table td:first-child { font-weight: 600; background: #f8f8f8; width: 200px; }
        .status { font-weight: bold; color: $status_color; }
        .violation { border: 1px solid #ddd; border-radius: 8px; padding: 16px; margin: 12px 0; }
        .violation-header { display: flex; align-items: center; gap: 8px; margin-bottom: 8px; }
        .severity-badge { padding: 2px 8px; border-radius: 4px; font-size: 12px; font-weight: 600; color: white; }
        .severity-error { background: #d32f2f; }
        .severity-warning { background: #f9a825; color: #333; }
        .severity-info { background: #1565c0; }
        .rule-id { font-family: monospace; font-weight: 600; }
        .detail-row { margin: 4px 0; }
        .detail-label { font-weight: 600; color: #666; }
        .context-block { background: #f5f5f5; padding: 8px 12px; border-radius: 4px; font-family: monospace; font-size: 13px; margin: 4px 0; }
        .remediation { background: #e8f5e9; padding: 8px 12px; border-radius: 4px; margin: 4px 0; }
        .footer { margin-top: 40px; padding-top: 16px; border-top: 1px solid #eee; color: #999; font-size: 13px; }"""


def escape_html(text: str) -> str:
    """Escape ``& < > " '`` for safe embedding in element content and attributes."""
    return html.escape(text, quote=True)


def _summary_rows(summary: ValidationSummary, document_title: str) -> List[str]:
    rows = [
        ("Document", escape_html(document_title), ""),
        ("Profile", escape_html(summary.profile_name), ""),
        ("Status", status_label(summary), ' class="status"'),
        ("Total Rules", str(summary.total_rules), ""),
        ("Passed", str(summary.passed_count), ""),
        ("Failed", str(summary.failed_count), ""),
        ("Warnings", str(summary.warning_count), ""),
        ("Not Applicable", str(summary.not_applicable_count), ""),
        ("Pass Rate", f"{pass_rate_percent(summary.pass_rate)}%", ""),
        ("Duration", format_duration(summary.duration), ""),
    ]
    return [f"        <tr><td>{label}</td><td{attrs}>{value}</td></tr>" for label, value, attrs in rows]


def _violation_block(violation: ViolationItem) -> List[str]:
    severity = violation.severity.value
    lines = [
        '    <div class="violation">',
        '        <div class="violation-header">',
        f'            <span class="severity-badge severity-{severity}">{severity}</span>',
        f'            <span class="rule-id">{escape_html(violation.rule_id)}</span>',
        f"            <span>{escape_html(location_label(violation))}</span>",
        "        </div>",
        f'        <div class="detail-row">{escape_html(violation.message)}</div>',
    ]
    if violation.wcag_criterion is not None:
        lines.append(
            '        <div class="detail-row"><span class="detail-label">WCAG:</span> '
            f"{escape_html(violation.wcag_criterion)}</div>"
        )
    if violation.context is not None:
        lines.append(f'        <div class="context-block">{escape_html(violation.context)}</div>')
    if violation.remediation is not None:
        lines.append(
            '        <div class="remediation"><span class="detail-label">Remediation:</span> '
            f"{escape_html(violation.remediation)}</div>"
        )
    lines.append("    </div>")
    return lines


def export_html(
    summary: ValidationSummary,
    violations: Sequence[ViolationItem],
    document_title: str,
    now: Optional[datetime] = None,
) -> str:
    """Render the summary table and one block per violation as a complete HTML page."""
    generated = format_report_date(report_time(now))
    status_color = STATUS_COLORS[status_label(summary)]

    lines = [
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '    <meta charset="UTF-8">',
        '    <meta name="viewport" content="width=device-width, initial-scale=1.0">',
        f"    <title>Verificar Report - {escape_html(document_title)}</title>",
        "    <style>",
        STYLESHEET.replace("$status_color", status_color),
        "    </style>",
        "</head>",
        "<body>",
        "    <h1>Verificar Validation Report</h1>",
        "",
        "    <h2>Summary</h2>",
        '    <table class="summary-table">',
        *_summary_rows(summary, document_title),
        "    </table>",
        "",
    ]

    if not violations:
        lines.append("    <h2>Violations</h2>")
        lines.append("    <p>No violations found. The document is conformant.</p>")
    else:
        lines.append(f"    <h2>Violations ({len(violations)})</h2>")
        for violation in violations:
            lines.extend(_violation_block(violation))

    lines.extend([
        "",
        '    <div class="footer">',
        f"        Generated by Verificar on {generated}",
        "    </div>",
        "</body>",
        "</html>",
        "",
    ])
    return "\n".join(lines)
