"""Flag imports of modules with a history of misuse (B403, B404, B405)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Tuple

from codeguard.result import Finding
from codeguard.severity import Confidence, Severity
from codeguard.syntax import SourceUnit

from . import Rule, match_name

if TYPE_CHECKING:  # pragma: no cover
    from codeguard.config import ScanSettings

IMPORT_RULES = (
    (
        "B403",
        "Consider possible security implications associated with pickle-family modules",
        "Deserializing untrusted data with {module} can execute arbitrary code.",
        "CWE-502",
    ),
    (
        "B404",
        "Consider possible security implications associated with the subprocess module",
        "Review how {module} builds and runs commands.",
        "CWE-78",
    ),
    (
        "B405",
        "XML parsing with modules vulnerable to entity expansion",
        "Replace {module} with defusedxml or call defusedxml.defuse_stdlib().",
        "CWE-20",
    ),
)


@dataclass(frozen=True)
class SensitiveImportRule(Rule):
    """Report each import statement naming one of ``modules``."""

    modules: Tuple[str, ...] = ()
    advice: str = ""

    def check(self, unit: SourceUnit) -> List[Finding]:
        findings: List[Finding] = []
        for node in unit.root.find("Import"):
            for imported in node.attr("modules", ()):
                matched = match_name(imported, self.modules)
                if matched:
                    message = f"Import of sensitive module {imported!r}. {self.advice.format(module=matched)}"
                    findings.append(self.finding(unit, node, message))
                    break
        return findings


def make_rules(settings: "ScanSettings") -> List[Rule]:
    return [
        SensitiveImportRule(
            id=rule_id,
            title=title,
            severity=Severity.LOW,
            confidence=Confidence.HIGH,
            reference=reference,
            modules=tuple(settings.sensitive_modules.get(rule_id, ())),
            advice=advice,
        )
        for rule_id, title, advice, reference in IMPORT_RULES
    ]
