"""Core result data structures for the scanner."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .severity import LEVEL_ORDER, Confidence, Severity

PARSE_ERROR = "PARSE_ERROR"
RULE_ERROR = "RULE_ERROR"
DIAGNOSTIC_RULE_IDS = (PARSE_ERROR, RULE_ERROR)


@dataclass(frozen=True)
class Finding:
    """Capture a single reported issue."""

    rule_id: str
    severity: Severity
    confidence: Confidence
    source_unit_id: str
    line: int
    message: str
    reference: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "confidence": self.confidence.value,
            "file": self.source_unit_id,
            "line": self.line,
            "message": self.message,
            "reference": self.reference,
        }


def _count(values: Iterable[str]) -> Dict[str, int]:
    counts = {level: 0 for level in LEVEL_ORDER}
    for value in values:
        counts[value] += 1
    return counts


@dataclass(frozen=True)
class ScanReport:
    """Sorted findings of one scan pass plus their summary counts."""

    findings: Tuple[Finding, ...] = ()
    units_scanned: int = 0
    incomplete: bool = False
    count_by_severity: Mapping[str, int] = field(init=False, compare=False)
    count_by_confidence: Mapping[str, int] = field(init=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "count_by_severity", _count(f.severity.value for f in self.findings))
        object.__setattr__(self, "count_by_confidence", _count(f.confidence.value for f in self.findings))

    @classmethod
    def build(
        cls,
        findings: Iterable[Finding],
        unit_order: Sequence[str] = (),
        rule_order: Sequence[str] = (),
        units_scanned: int = 0,
        incomplete: bool = False,
    ) -> "ScanReport":
        """Sort ``findings`` by unit position, line, then rule position.

        Units and rules missing from the given orders sort after the known
        ones, by identifier. Diagnostic IDs therefore follow the registered
        rules reported on the same line.
        """

        unit_rank: Dict[str, int] = {}
        for index, unit_id in enumerate(unit_order):
            unit_rank.setdefault(unit_id, index)
        rule_rank = {rule_id: index for index, rule_id in enumerate(rule_order)}
        unknown_unit = len(unit_rank)
        unknown_rule = len(rule_rank)

        def sort_key(finding: Finding) -> Tuple[int, str, int, int, str, str]:
            return (
                unit_rank.get(finding.source_unit_id, unknown_unit),
                finding.source_unit_id,
                finding.line,
                rule_rank.get(finding.rule_id, unknown_rule),
                finding.rule_id,
                finding.message,
            )

        ordered = tuple(sorted(findings, key=sort_key))
        return cls(findings=ordered, units_scanned=units_scanned, incomplete=incomplete)

    @property
    def total(self) -> int:
        return len(self.findings)

    def filter(
        self,
        min_severity: Severity = Severity.LOW,
        min_confidence: Confidence = Confidence.LOW,
    ) -> "ScanReport":
        """Return a report keeping findings at or above both thresholds, order preserved."""

        kept = tuple(
            finding
            for finding in self.findings
            if finding.severity.at_least(min_severity) and finding.confidence.at_least(min_confidence)
        )
        return ScanReport(findings=kept, units_scanned=self.units_scanned, incomplete=self.incomplete)

    def fails(self, threshold: Severity = Severity.HIGH, min_confidence: Confidence = Confidence.LOW) -> bool:
        return any(
            finding.severity.at_least(threshold) and finding.confidence.at_least(min_confidence)
            for finding in self.findings
        )

    def exit_code(self, threshold: Severity = Severity.HIGH, min_confidence: Confidence = Confidence.LOW) -> int:
        return 1 if self.fails(threshold, min_confidence) else 0

    def for_unit(self, unit_id: str) -> Tuple[Finding, ...]:
        return tuple(finding for finding in self.findings if finding.source_unit_id == unit_id)

    def to_dict(self) -> Dict[str, object]:
        return {
            "summary": {
                "severity": dict(self.count_by_severity),
                "confidence": dict(self.count_by_confidence),
                "total": self.total,
            },
            "findings": [finding.to_dict() for finding in self.findings],
            "units_scanned": self.units_scanned,
            "incomplete": self.incomplete,
        }
