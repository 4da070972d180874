from datetime import datetime, timezone

import pytest

from verificar.core.models import Severity, ValidationResult, ValidationSummary, ViolationItem

FIXED_NOW = datetime(2026, 2, 7, 15, 30, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def summary():
    return ValidationSummary(
        profile_name="PDF/UA-2",
        total_rules=50,
        passed_count=42,
        failed_count=5,
        warning_count=3,
        not_applicable_count=0,
        pass_rate=0.84,
        duration=1.234,
    )


@pytest.fixture
def violations():
    return [
        ViolationItem(
            id="rule-1-p1",
            rule_id="PDFA-1.2.3",
            severity=Severity.ERROR,
            message="Missing alternative text for figure",
            description="All figures must have alternative text",
            page_index=0,
            object_type="Figure",
            context="/StructTreeRoot/Document/Figure[0]",
            wcag_criterion="1.1.1",
            wcag_principle="Perceivable",
            wcag_level="A",
            specification="PDF/UA-2 clause 7.3",
            remediation="Add /Alt entry to the structure element",
        ),
        ViolationItem(
            id="rule-2-p3",
            rule_id="WCAG-4.1.2",
            severity=Severity.WARNING,
            message="Form field missing accessible name",
            description="Interactive controls must have accessible names",
            page_index=2,
            object_type="Widget",
            wcag_criterion="4.1.2",
            wcag_principle="Robust",
            wcag_level="A",
        ),
        ViolationItem(
            id="rule-3-doc",
            rule_id="INFO-1.0.0",
            severity=Severity.INFO,
            message="Document title should be set",
            description="Setting a document title improves accessibility",
            specification="PDF/UA-2 clause 7.1",
            remediation="Set the /Title entry in document metadata",
        ),
    ]


@pytest.fixture
def result(summary, violations):
    return ValidationResult(document="report.pdf", summary=summary, violations=violations)
