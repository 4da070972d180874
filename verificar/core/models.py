from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class ValidationSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    profile_name: str
    total_rules: int = Field(ge=0)
    passed_count: int = Field(ge=0)
    failed_count: int = Field(ge=0)
    warning_count: int = Field(ge=0)
    not_applicable_count: int = Field(ge=0)
    pass_rate: float = Field(ge=0.0, le=1.0)
    duration: float = Field(ge=0.0)

    @classmethod
    def from_counts(
        cls,
        profile_name: str,
        passed_count: int,
        failed_count: int,
        warning_count: int = 0,
        not_applicable_count: int = 0,
        duration: float = 0.0,
    ) -> "ValidationSummary":
        """Build a summary whose total and pass rate are derived from the counts."""
        total = passed_count + failed_count + warning_count + not_applicable_count
        return cls(
            profile_name=profile_name,
            total_rules=total,
            passed_count=passed_count,
            failed_count=failed_count,
            warning_count=warning_count,
            not_applicable_count=not_applicable_count,
            pass_rate=(passed_count / total) if total else 0.0,
            duration=duration,
        )

    @property
    def is_conformant(self) -> bool:
        return self.failed_count == 0

    @property
    def status_label(self) -> str:
        return "Conformant" if self.is_conformant else "Non-conformant"

    @property
    def compliance_label(self) -> str:
        if self.is_conformant:
            return "Conformant"
        plural = "" if self.failed_count == 1 else "s"
        return f"Non-conformant ({self.failed_count} error{plural})"


class ViolationItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    rule_id: str
    severity: Severity
    message: str
    description: str = ""
    page_index: Optional[int] = Field(default=None, ge=0)
    object_type: Optional[str] = None
    context: Optional[str] = None
    wcag_criterion: Optional[str] = None
    wcag_principle: Optional[str] = None
    wcag_level: Optional[str] = None
    specification: Optional[str] = None
    remediation: Optional[str] = None

    @property
    def page_number(self) -> Optional[int]:
        return None if self.page_index is None else self.page_index + 1

    @property
    def location_label(self) -> str:
        page = self.page_number
        return f"Page {page}" if page is not None else "Document-level"


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    document: str
    summary: ValidationSummary
    violations: List[ViolationItem] = []


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class OrchestratorSnapshot(BaseModel):
    """One consistent view of the orchestrator, replaced wholesale on each transition."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    job_id: int = 0
    state: JobState = JobState.IDLE
    busy: bool = False
    progress: float = 0.0
    note: Optional[str] = None
    result: Optional[ValidationResult] = None
    error: Optional[BaseException] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED)

    def describe(self) -> dict:
        """JSON-friendly view used by the CLI and the API."""
        return {
            "job_id": self.job_id,
            "state": self.state.value,
            "busy": self.busy,
            "progress": self.progress,
            "note": self.note,
            "error": None if self.error is None else str(self.error),
            "error_type": None if self.error is None else type(self.error).__name__,
            "has_result": self.result is not None,
        }
