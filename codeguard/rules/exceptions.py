"""Detect ``try``/``except`` blocks that silently discard errors (B110)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List

from codeguard.result import Finding
from codeguard.severity import Confidence, Severity
from codeguard.syntax import SourceUnit, SyntaxNode

from . import Rule

if TYPE_CHECKING:  # pragma: no cover
    from codeguard.config import ScanSettings


def is_noop(statement: SyntaxNode) -> bool:
    """``pass`` or a bare ``...`` expression."""

    if statement.kind == "Pass":
        return True
    if statement.kind == "Expression":
        value = statement.child("value")
        return value is not None and value.kind == "Literal" and value.attr("value") is Ellipsis
    return False


@dataclass(frozen=True)
class TryExceptPassRule(Rule):
    def check(self, unit: SourceUnit) -> List[Finding]:
        findings: List[Finding] = []
        for handler in unit.root.find("ExceptHandler"):
            body = handler.children_of("body")
            if len(body) == 1 and is_noop(body[0]):
                caught = handler.attr("type") or "all exceptions"
                findings.append(self.finding(unit, handler, f"Handler for {caught} silently ignores the error"))
        return findings


def make_rules(settings: "ScanSettings") -> List[Rule]:
    return [
        TryExceptPassRule(
            id="B110",
            title="Try, Except, Pass detected",
            severity=Severity.LOW,
            confidence=Confidence.HIGH,
            reference="CWE-703",
        )
    ]
