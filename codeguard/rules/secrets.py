"""Detect hardcoded passwords assigned to suspiciously named variables (B105)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Tuple

from codeguard.result import Finding
from codeguard.severity import Confidence, Severity
from codeguard.syntax import SourceUnit, SyntaxNode

from . import Rule

if TYPE_CHECKING:  # pragma: no cover
    from codeguard.config import ScanSettings

MAX_LITERAL_PREVIEW = 40


def _target_name(target: SyntaxNode) -> Optional[str]:
    if target.kind == "Name":
        return target.attr("id")
    if target.kind == "Attribute":
        return target.attr("attr")
    return None


def _preview(value: str) -> str:
    if len(value) > MAX_LITERAL_PREVIEW:
        value = value[: MAX_LITERAL_PREVIEW - 3] + "..."
    return repr(value)


@dataclass(frozen=True)
class HardcodedPasswordRule(Rule):
    """Report a string literal assigned to a name matching any of ``patterns``."""

    patterns: Tuple[re.Pattern, ...] = ()

    def check(self, unit: SourceUnit) -> List[Finding]:
        findings: List[Finding] = []
        for node in unit.root.find("Assignment"):
            value = node.child("value")
            if value is None or value.kind != "StringLiteral":
                continue
            for target in node.children_of("targets"):
                name = _target_name(target)
                if name and any(pattern.search(name) for pattern in self.patterns):
                    message = f"Possible hardcoded password assigned to {name!r}: {_preview(value.attr('value'))}"
                    findings.append(self.finding(unit, node, message))
                    break
        return findings


def make_rules(settings: "ScanSettings") -> List[Rule]:
    return [
        HardcodedPasswordRule(
            id="B105",
            title="Possible hardcoded password string",
            severity=Severity.LOW,
            confidence=Confidence.MEDIUM,
            reference="CWE-259",
            patterns=tuple(re.compile(pattern, re.IGNORECASE) for pattern in settings.secret_name_patterns),
        )
    ]
