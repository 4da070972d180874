"""Translate raw engine assertions into the summary and violation models.

Engines report one assertion per rule check. Passed and not-applicable checks
only feed the counts; failed checks become errors and inconclusive (unknown)
checks become warnings.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from verificar.core.models import Severity, ValidationResult, ValidationSummary, ViolationItem


class AssertionStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    UNKNOWN = "unknown"
    NOT_APPLICABLE = "not_applicable"


class Assertion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    rule_id: str = Field(alias="ruleID")
    status: AssertionStatus
    message: str = ""
    page_number: Optional[int] = Field(default=None, ge=1, alias="page")
    context: Optional[str] = None
    content_path: Optional[str] = Field(default=None, alias="contentPath")
    wcag_criterion: Optional[str] = Field(default=None, alias="wcagCriterion")
    wcag_principle: Optional[str] = Field(default=None, alias="wcagPrinciple")
    wcag_level: Optional[str] = Field(default=None, alias="wcagLevel")
    specification: Optional[str] = None
    remediation: Optional[str] = None


def make_summary(assertions: Iterable[Assertion], profile_name: str, duration: float) -> ValidationSummary:
    counts = {status: 0 for status in AssertionStatus}
    for assertion in assertions:
        counts[assertion.status] += 1
    return ValidationSummary.from_counts(
        profile_name=profile_name,
        passed_count=counts[AssertionStatus.PASSED],
        failed_count=counts[AssertionStatus.FAILED],
        warning_count=counts[AssertionStatus.UNKNOWN],
        not_applicable_count=counts[AssertionStatus.NOT_APPLICABLE],
        duration=max(0.0, duration),
    )


def _violation_id(assertion: Assertion) -> str:
    location = str(assertion.page_number) if assertion.page_number is not None else "doc"
    return f"{assertion.rule_id}-{location}-{assertion.id[:8]}"


def make_violations(assertions: Iterable[Assertion]) -> List[ViolationItem]:
    violations: List[ViolationItem] = []
    for assertion in assertions:
        if assertion.status in (AssertionStatus.PASSED, AssertionStatus.NOT_APPLICABLE):
            continue
        severity = Severity.ERROR if assertion.status == AssertionStatus.FAILED else Severity.WARNING
        violations.append(
            ViolationItem(
                id=_violation_id(assertion),
                rule_id=assertion.rule_id,
                severity=severity,
                message=assertion.message,
                description=assertion.message,
                page_index=None if assertion.page_number is None else assertion.page_number - 1,
                object_type=assertion.context,
                context=assertion.content_path,
                wcag_criterion=assertion.wcag_criterion,
                wcag_principle=assertion.wcag_principle,
                wcag_level=assertion.wcag_level,
                specification=assertion.specification or assertion.rule_id,
                remediation=assertion.remediation,
            )
        )
    return violations


def make_result(document: str, profile_name: str, duration: float, assertions: Iterable[Assertion]) -> ValidationResult:
    items = list(assertions)
    return ValidationResult(
        document=document,
        summary=make_summary(items, profile_name, duration),
        violations=make_violations(items),
    )
