from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from verificar.core.models import Severity, ViolationItem

DOCUMENT_LEVEL = "Document-level"


class GroupingMode(str, Enum):
    NONE = "none"
    SEVERITY = "severity"
    CATEGORY = "category"
    PAGE = "page"


class ViolationList:
    """Filtered, searchable and grouped view over the violations of one run."""

    def __init__(self, violations: Sequence[ViolationItem] = ()):
        self.violations: List[ViolationItem] = list(violations)
        self.filter_severity: Optional[Severity] = None
        self.search_text = ""
        self.group_by = GroupingMode.SEVERITY

    def update(self, violations: Sequence[ViolationItem]) -> None:
        self.violations = list(violations)

    def clear(self) -> None:
        self.violations = []
        self.filter_severity = None
        self.search_text = ""

    def _matches(self, item: ViolationItem) -> bool:
        if self.filter_severity is not None and item.severity != self.filter_severity:
            return False
        needle = self.search_text.casefold()
        if not needle:
            return True
        haystacks = [item.message, item.rule_id, item.wcag_criterion or ""]
        return any(needle in text.casefold() for text in haystacks)

    def filtered(self) -> List[ViolationItem]:
        return [item for item in self.violations if self._matches(item)]

    def grouped(self) -> List[Tuple[str, List[ViolationItem]]]:
        items = self.filtered()
        if self.group_by == GroupingMode.NONE:
            return [("All Violations", items)] if items else []
        if self.group_by == GroupingMode.SEVERITY:
            return _group_by_severity(items)
        if self.group_by == GroupingMode.CATEGORY:
            return _group_by_category(items)
        return _group_by_page(items)

    def count(self, severity: Severity) -> int:
        return sum(1 for item in self.violations if item.severity == severity)

    def summary_text(self) -> str:
        """E.g. ``3 violations (1 error, 1 warning, 1 info)``."""
        total = len(self.violations)
        if total == 0:
            return "No violations"
        errors = self.count(Severity.ERROR)
        warnings = self.count(Severity.WARNING)
        infos = self.count(Severity.INFO)
        parts = []
        if errors:
            parts.append(f"{errors} error{'' if errors == 1 else 's'}")
        if warnings:
            parts.append(f"{warnings} warning{'' if warnings == 1 else 's'}")
        if infos:
            parts.append(f"{infos} info")
        return f"{total} violation{'' if total == 1 else 's'} ({', '.join(parts)})"


def _group_by_severity(items: List[ViolationItem]) -> List[Tuple[str, List[ViolationItem]]]:
    groups = []
    for severity in Severity:
        group = [item for item in items if item.severity == severity]
        if group:
            groups.append((f"{severity.label}s ({len(group)})", group))
    return groups


def _group_by_category(items: List[ViolationItem]) -> List[Tuple[str, List[ViolationItem]]]:
    groups: Dict[str, List[ViolationItem]] = {}
    for item in items:
        category = item.wcag_principle or item.specification or "Uncategorized"
        groups.setdefault(category, []).append(item)
    return sorted(groups.items())


def _group_by_page(items: List[ViolationItem]) -> List[Tuple[str, List[ViolationItem]]]:
    groups: Dict[Optional[int], List[ViolationItem]] = {}
    for item in items:
        groups.setdefault(item.page_number, []).append(item)
    # Document-level first, then ascending page number.
    keys = sorted(groups, key=lambda page: (page is not None, page or 0))
    return [(DOCUMENT_LEVEL if page is None else f"Page {page}", groups[page]) for page in keys]
