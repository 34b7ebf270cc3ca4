"""Flag weak hash constructors (B303) and non-cryptographic randomness (B311)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Tuple

from codeguard.result import Finding
from codeguard.severity import Confidence, Severity
from codeguard.syntax import SourceUnit

from . import Rule, match_name

if TYPE_CHECKING:  # pragma: no cover
    from codeguard.config import ScanSettings


@dataclass(frozen=True)
class BlacklistedCallRule(Rule):
    """Report calls whose resolved callee is one of ``names``."""

    names: Tuple[str, ...] = ()
    message: str = "Call to {callee}"

    def check(self, unit: SourceUnit) -> List[Finding]:
        findings: List[Finding] = []
        for node in unit.root.find("Call"):
            callee = node.attr("callee")
            if callee and match_name(callee, self.names):
                findings.append(self.finding(unit, node, self.message.format(callee=callee)))
        return findings


def make_rules(settings: "ScanSettings") -> List[Rule]:
    return [
        BlacklistedCallRule(
            id="B303",
            title="Use of insecure MD2, MD4, MD5, or SHA1 hash function",
            severity=Severity.MEDIUM,
            confidence=Confidence.HIGH,
            reference="CWE-327",
            names=tuple(settings.weak_hash_names),
            message="Use of weak hash function {callee}; prefer SHA-256 or stronger",
        ),
        BlacklistedCallRule(
            id="B311",
            title="Standard pseudo-random generators are not suitable for security purposes",
            severity=Severity.LOW,
            confidence=Confidence.HIGH,
            reference="CWE-330",
            names=tuple(settings.insecure_random_names),
            message="Call to {callee} is not cryptographically secure; use the secrets module",
        ),
    ]
