"""Render a :class:`ScanReport` for people (text) or machines (json)."""

from __future__ import annotations

import json
from typing import Callable, Dict, List, Mapping

from .result import ScanReport
from .severity import LEVEL_ORDER, Severity


def _summary_rows(title: str, counts: Mapping[str, int]) -> List[str]:
    header = f"{title:<10} | {'Count':>5}"
    lines = [header, "-" * len(header)]
    for level in LEVEL_ORDER:
        lines.append(f"{level:<10} | {counts[level]:>5}")
    lines.append("-" * len(header))
    return lines


def format_summary_table(report: ScanReport, fail_on: Severity = Severity.HIGH) -> str:
    """Create a human-readable summary and finding listing for console output."""

    lines: List[str] = []
    lines.append("Scan Summary")
    lines.append("=" * 40)
    lines.extend(_summary_rows("Severity", report.count_by_severity))
    lines.append("")
    lines.extend(_summary_rows("Confidence", report.count_by_confidence))
    status = "FAIL" if report.fails(fail_on) else "PASS"
    lines.append(f"Status    : {status}")
    lines.append(f"Files     : {report.units_scanned}")
    lines.append(f"Findings  : {report.total}")
    if report.incomplete:
        lines.append("Warning   : scan deadline expired, results are partial")

    if report.findings:
        lines.append("")
        lines.append("Findings")
        lines.append("-" * 40)
        for finding in report.findings:
            lines.append(
                f"[{finding.severity.value}/{finding.confidence.value}] {finding.rule_id} {finding.message}"
            )
            location = f"  Location: {finding.source_unit_id}:{finding.line}"
            if finding.reference:
                location += f" ({finding.reference})"
            lines.append(location)
    return "\n".join(lines)


def format_json(report: ScanReport, fail_on: Severity = Severity.HIGH) -> str:
    payload = report.to_dict()
    payload["passed"] = not report.fails(fail_on)
    return json.dumps(payload, indent=2)


FORMATTERS: Dict[str, Callable[[ScanReport, Severity], str]] = {
    "json": format_json,
    "text": format_summary_table,
}
