"""Rule interface and registry for the scanner."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, List, Optional, Tuple

from codeguard.errors import ConfigurationError, DuplicateRuleError, RegistryBusyError
from codeguard.result import Finding
from codeguard.severity import Confidence, Severity
from codeguard.syntax import SourceUnit, SyntaxNode

if TYPE_CHECKING:  # pragma: no cover
    from codeguard.config import ScanSettings


@dataclass(frozen=True)
class Rule:
    """Immutable description of one check plus the check itself.

    Subclasses override :meth:`check`; everything a rule needs to decide is
    stored on the frozen instance, so evaluating a rule has no side effects.
    """

    id: str
    title: str
    severity: Severity
    confidence: Confidence
    reference: Optional[str] = None

    def check(self, unit: SourceUnit) -> Iterable[Finding]:
        """Inspect ``unit`` and return the findings it produces."""

        raise NotImplementedError

    def finding(self, unit: SourceUnit, node: SyntaxNode, message: str) -> Finding:
        return Finding(
            rule_id=self.id,
            severity=self.severity,
            confidence=self.confidence,
            source_unit_id=unit.identifier,
            line=node.line,
            message=message,
            reference=self.reference,
        )


def match_name(name: str, candidates: Iterable[str]) -> Optional[str]:
    """Return the candidate equal to ``name`` or a dotted parent of it."""

    for candidate in candidates:
        if name == candidate or name.startswith(candidate + "."):
            return candidate
    return None


class RuleRegistry:
    """Ordered, named collection of rules."""

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._rules: Dict[str, Rule] = {}
        self._lock = threading.Lock()
        self._active_scans = 0
        for rule in rules:
            self.register(rule)

    def register(self, rule: Rule) -> None:
        with self._lock:
            self._ensure_idle()
            if rule.id in self._rules:
                raise DuplicateRuleError(rule.id)
            self._rules[rule.id] = rule

    def unregister(self, rule_id: str) -> Rule:
        with self._lock:
            self._ensure_idle()
            return self._rules.pop(rule_id)

    def get(self, rule_id: str) -> Rule:
        return self._rules[rule_id]

    def list(self) -> List[Rule]:
        """Return rules in registration order."""

        return list(self._rules.values())

    def ids(self) -> Tuple[str, ...]:
        return tuple(self._rules)

    def select(self, rule_ids: Iterable[str]) -> "RuleRegistry":
        """Return a new registry restricted to ``rule_ids``, keeping registration order."""

        wanted = {rule_id.upper() for rule_id in rule_ids}
        unknown = sorted(wanted - set(self._rules))
        if unknown:
            raise ConfigurationError(f"Unknown rule ID(s): {', '.join(unknown)}")
        return RuleRegistry(rule for rule in self._rules.values() if rule.id in wanted)

    @contextmanager
    def scanning(self) -> Iterator[Tuple[Rule, ...]]:
        """Hold the registry read-only and yield a snapshot of its rules."""

        with self._lock:
            self._active_scans += 1
            snapshot = tuple(self._rules.values())
        try:
            yield snapshot
        finally:
            with self._lock:
                self._active_scans -= 1

    def _ensure_idle(self) -> None:
        if self._active_scans:
            raise RegistryBusyError("Rules cannot be registered or removed during an active scan")

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.list())

    def __len__(self) -> int:
        return len(self._rules)


def load_rules(settings: "ScanSettings") -> List[Rule]:
    """Build the full rule catalog, parameterized by ``settings``."""

    from .crypto import make_rules as crypto_rules
    from .exceptions import make_rules as exception_rules
    from .http_calls import make_rules as http_rules
    from .imports import make_rules as import_rules
    from .secrets import make_rules as secret_rules

    rules: List[Rule] = []
    for factory in (import_rules, secret_rules, crypto_rules, http_rules, exception_rules):
        rules.extend(factory(settings))
    return rules


def default_registry(settings: Optional["ScanSettings"] = None) -> RuleRegistry:
    """Return a registry holding the catalog, narrowed to ``settings.rules`` if set."""

    if settings is None:
        from codeguard.config import ScanSettings

        settings = ScanSettings()
    registry = RuleRegistry(load_rules(settings))
    if settings.rules:
        registry = registry.select(settings.rules)
    return registry
