from __future__ import annotations

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

SEPARATOR = "=" * 60
THIN_SEPARATOR = "-" * 60


def _section(title: str) -> List[str]:
    return [THIN_SEPARATOR, title, THIN_SEPARATOR]


def _violation_lines(index: int, violation: ViolationItem) -> List[str]:
    lines = [
        f"{index}. [{violation.severity.value}] {violation.rule_id}",
        f"   {violation.message}",
        f"   Location: {location_label(violation)}",
    ]
    if violation.wcag_criterion is not None:
        lines.append(f"   WCAG: {violation.wcag_criterion}")
    if violation.remediation is not None:
        lines.append(f"   Fix: {violation.remediation}")
    lines.append("")
    return lines


def export_text(
    summary: ValidationSummary,
    violations: Sequence[ViolationItem],
    document_title: str,
    now: Optional[datetime] = None,
) -> str:
    """Export validation results as a plain text report with LF line endings."""
    lines = [
        SEPARATOR,
        "VERIFICAR VALIDATION REPORT",
        SEPARATOR,
        "",
        f"Document:  {document_title}",
        f"Profile:   {summary.profile_name}",
        f"Status:    {status_label(summary)}",
        f"Date:      {format_report_date(report_time(now))}",
        "",
        *_section("SUMMARY"),
        f"Total Rules:     {summary.total_rules}",
        f"Passed:          {summary.passed_count}",
        f"Failed:          {summary.failed_count}",
        f"Warnings:        {summary.warning_count}",
        f"Not Applicable:  {summary.not_applicable_count}",
        f"Pass Rate:       {pass_rate_percent(summary.pass_rate)}%",
        f"Duration:        {format_duration(summary.duration)}",
        "",
    ]

    if not violations:
        lines.extend(_section("VIOLATIONS"))
        lines.append("No violations found.")
        lines.append("")
    else:
        lines.extend(_section(f"VIOLATIONS ({len(violations)})"))
        lines.append("")
        for index, violation in enumerate(violations, start=1):
            lines.extend(_violation_lines(index, violation))

    lines.extend([SEPARATOR, "Generated by Verificar", SEPARATOR, ""])
    return "\n".join(lines)
