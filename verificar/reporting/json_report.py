"""Structured JSON export of validation results.

The document carries a summary section with counts and pass rate followed by
the violations in input order. Keys are sorted so that two exports of the same
input differ only in `generatedAt`.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from verificar.core.models import Severity, ValidationSummary, ViolationItem
from verificar.core.utils import RenderDegraded, iso_timestamp
from verificar.reporting.formatting import report_time

logger = logging.getLogger(__name__)

EMPTY_REPORT = b"{}"


class SummarySection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    profile_name: str = Field(alias="profileName")
    total_rules: int = Field(alias="totalRules")
    passed_count: int = Field(alias="passedCount")
    failed_count: int = Field(alias="failedCount")
    warning_count: int = Field(alias="warningCount")
    not_applicable_count: int = Field(alias="notApplicableCount")
    pass_rate: float = Field(alias="passRate")
    duration: float

    @classmethod
    def from_summary(cls, summary: ValidationSummary) -> "SummarySection":
        return cls(**summary.model_dump())

    def to_summary(self) -> ValidationSummary:
        return ValidationSummary(**self.model_dump())


class ViolationEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    rule_id: str = Field(alias="ruleID")
    severity: str
    message: str
    description: str
    page: Optional[int] = None
    object_type: Optional[str] = Field(default=None, alias="objectType")
    context: Optional[str] = None
    wcag_criterion: Optional[str] = Field(default=None, alias="wcagCriterion")
    wcag_principle: Optional[str] = Field(default=None, alias="wcagPrinciple")
    wcag_level: Optional[str] = Field(default=None, alias="wcagLevel")
    specification: Optional[str] = None
    remediation: Optional[str] = None

    @classmethod
    def from_violation(cls, violation: ViolationItem) -> "ViolationEntry":
        data = violation.model_dump(exclude={"page_index", "severity"})
        return cls(severity=violation.severity.value, page=violation.page_number, **data)

    def to_violation(self) -> ViolationItem:
        data = self.model_dump(exclude={"page", "severity"})
        return ViolationItem(
            severity=Severity(self.severity),
            page_index=None if self.page is None else self.page - 1,
            **data,
        )


class JSONReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document: str
    generated_at: str = Field(alias="generatedAt")
    summary: SummarySection
    violations: List[ViolationEntry] = []


def convert_to_report(
    summary: ValidationSummary,
    violations: Sequence[ViolationItem],
    document_title: str,
    now: Optional[datetime] = None,
) -> dict:
    """Build the JSON-ready report dictionary, keyed by the published field names."""
    report = JSONReport(
        document=document_title,
        generated_at=iso_timestamp(report_time(now)),
        summary=SummarySection.from_summary(summary),
        violations=[ViolationEntry.from_violation(v) for v in violations],
    )
    return report.model_dump(by_alias=True)


def export_json(
    summary: ValidationSummary,
    violations: Sequence[ViolationItem],
    document_title: str,
    now: Optional[datetime] = None,
) -> bytes:
    """Export validation results as UTF-8 encoded JSON.

    Never raises for well-formed input: if encoding fails the result is an
    empty JSON object.
    """
    try:
        data = convert_to_report(summary, violations, document_title, now)
        text = json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False, allow_nan=False)
        # UnicodeEncodeError (lone surrogates) is a ValueError.
        return text.encode("utf-8")
    except (TypeError, ValueError) as exc:
        logger.warning("JSON export degraded to an empty report: %s", RenderDegraded(str(exc)))
        return EMPTY_REPORT


def load_json_report(data: bytes) -> Tuple[str, ValidationSummary, List[ViolationItem]]:
    """Decode an exported report back into `(title, summary, violations)`."""
    report = JSONReport.model_validate_json(data)
    return (
        report.document,
        report.summary.to_summary(),
        [entry.to_violation() for entry in report.violations],
    )
