"""Formatting rules shared by every report format.

Keeping these in one place is what keeps the JSON, HTML and text reports in
agreement on pass rate, duration, status and location labels.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Optional

from verificar.core.models import ValidationSummary, ViolationItem

REPORT_FORMATS = ("json", "html", "text")

FILE_EXTENSIONS = {
    "json": "json",
    "html": "html",
    "text": "txt",
}


def pass_rate_percent(pass_rate: float) -> int:
    """Whole-number percentage, rounding halves away from zero."""
    scaled = pass_rate * 100
    return int(math.copysign(math.floor(abs(scaled) + 0.5), scaled))


def format_duration(seconds: float) -> str:
    return f"{seconds:.2f}s"


def status_label(summary: ValidationSummary) -> str:
    return summary.status_label


def location_label(violation: ViolationItem) -> str:
    return violation.location_label


def report_time(now: Optional[datetime] = None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def format_report_date(now: datetime) -> str:
    """Long date with a short time, e.g. ``October 19, 2026 at 3:04 PM``."""
    hour = now.hour % 12 or 12
    meridiem = "AM" if now.hour < 12 else "PM"
    return f"{now:%B} {now.day}, {now.year} at {hour}:{now:%M} {meridiem}"


def suggested_filename(document_title: str, fmt: str) -> str:
    stem = re.sub(r"[^\w.-]+", "-", document_title).strip("-.") or "document"
    if stem.lower().endswith(".pdf"):
        stem = stem[:-4]
    return f"{stem}-report.{FILE_EXTENSIONS[fmt]}"
