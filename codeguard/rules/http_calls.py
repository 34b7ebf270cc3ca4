"""Check HTTP client calls for disabled certificate checks (B501) and missing timeouts (B113)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Tuple

from codeguard.result import Finding
from codeguard.severity import Confidence, Severity
from codeguard.syntax import SourceUnit, SyntaxNode

from . import Rule, match_name

if TYPE_CHECKING:  # pragma: no cover
    from codeguard.config import ScanSettings


def keyword_argument(call: SyntaxNode, name: str) -> Optional[SyntaxNode]:
    """Return the value node bound to keyword ``name`` in ``call``, if any."""

    for argument in call.children_of("arguments"):
        if argument.attr("keyword") == name:
            return argument.child("value")
    return None


@dataclass(frozen=True)
class _HttpCallRule(Rule):
    request_names: Tuple[str, ...] = ()

    def _request_calls(self, unit: SourceUnit):
        for node in unit.root.find("Call"):
            callee = node.attr("callee")
            if callee and match_name(callee, self.request_names):
                yield node, callee


@dataclass(frozen=True)
class CertificateValidationRule(_HttpCallRule):
    """``verify=False`` bound as a literal."""

    def check(self, unit: SourceUnit) -> List[Finding]:
        findings: List[Finding] = []
        for node, callee in self._request_calls(unit):
            verify = keyword_argument(node, "verify")
            if verify is not None and verify.kind == "Literal" and verify.attr("value") is False:
                message = f"Call to {callee} with verify=False disables TLS certificate checks"
                findings.append(self.finding(unit, node, message))
        return findings


@dataclass(frozen=True)
class RequestTimeoutRule(_HttpCallRule):
    """No ``timeout`` keyword at all."""

    def check(self, unit: SourceUnit) -> List[Finding]:
        findings: List[Finding] = []
        for node, callee in self._request_calls(unit):
            if keyword_argument(node, "timeout") is None:
                findings.append(self.finding(unit, node, f"Call to {callee} without timeout"))
        return findings


def make_rules(settings: "ScanSettings") -> List[Rule]:
    names = tuple(settings.http_request_names)
    return [
        CertificateValidationRule(
            id="B501",
            title="Request with certificate validation disabled",
            severity=Severity.HIGH,
            confidence=Confidence.HIGH,
            reference="CWE-295",
            request_names=names,
        ),
        RequestTimeoutRule(
            id="B113",
            title="Request without timeout",
            severity=Severity.MEDIUM,
            confidence=Confidence.LOW,
            reference="CWE-400",
            request_names=names,
        ),
    ]
