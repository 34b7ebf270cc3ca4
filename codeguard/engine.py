"""Apply every registered rule to every source unit and aggregate the findings."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .config import ScanSettings
from .errors import ParseError, RuleEvaluationError
from .result import PARSE_ERROR, RULE_ERROR, Finding, ScanReport
from .rules import Rule, RuleRegistry, default_registry
from .severity import Confidence, Severity
from .syntax import SourceText, SourceUnit, parse_source
from .utils import iter_code_files, read_source_file

logger = logging.getLogger(__name__)

ScanItem = Union[SourceUnit, ParseError]


def load_source(path: Path) -> SourceUnit:
    """Read and parse one file; unreadable files raise :class:`ParseError` too."""

    identifier = path.as_posix()
    try:
        data = read_source_file(path)
    except OSError as exc:
        raise ParseError(identifier, None, f"cannot read source: {exc}") from exc
    return parse_source(identifier, data)


def parse_error_finding(error: ParseError) -> Finding:
    return Finding(
        rule_id=PARSE_ERROR,
        severity=Severity.LOW,
        confidence=Confidence.HIGH,
        source_unit_id=error.unit_id,
        line=error.line,
        message=f"Could not parse source: {error.reason}",
    )


def rule_error_finding(error: RuleEvaluationError) -> Finding:
    return Finding(
        rule_id=RULE_ERROR,
        severity=Severity.LOW,
        confidence=Confidence.LOW,
        source_unit_id=error.unit_id,
        line=0,
        message=f"Rule {error.rule_id} failed on {error.unit_id}: {type(error.cause).__name__}: {error.cause}",
    )


class Scanner:
    """Evaluate (unit, rule) pairs with failure isolation and a deterministic report.

    With ``workers > 1`` units are evaluated on a thread pool. ``deadline``
    bounds the whole scan in seconds; when it expires the report holds the
    units finished so far and is marked incomplete.
    """

    def __init__(
        self,
        registry: Optional[RuleRegistry] = None,
        workers: int = 1,
        deadline: Optional[float] = None,
        honor_nosec: bool = True,
    ) -> None:
        self.registry = registry if registry is not None else default_registry()
        self.workers = max(1, workers)
        self.deadline = deadline
        self.honor_nosec = honor_nosec

    @classmethod
    def from_settings(cls, settings: ScanSettings, registry: Optional[RuleRegistry] = None) -> "Scanner":
        return cls(
            registry=registry if registry is not None else default_registry(settings),
            workers=settings.workers,
            deadline=settings.deadline,
            honor_nosec=not settings.ignore_nosec,
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def scan(self, units: Sequence[SourceUnit]) -> ScanReport:
        return self._scan(list(units), time.monotonic())

    def scan_sources(self, sources: Iterable[SourceText]) -> ScanReport:
        started = time.monotonic()
        items: List[ScanItem] = []
        for source in sources:
            try:
                items.append(parse_source(source.identifier, source.text))
            except ParseError as exc:
                logger.warning("Skipping rules for %s", exc)
                items.append(exc)
        return self._scan(items, started)

    def scan_paths(self, paths: Iterable[str], exclude: Iterable[str] = ()) -> ScanReport:
        started = time.monotonic()
        items: List[ScanItem] = []
        for path in iter_code_files(paths, exclude=exclude):
            try:
                items.append(load_source(path))
            except ParseError as exc:
                logger.warning("Skipping rules for %s", exc)
                items.append(exc)
        logger.debug("Discovered %d source file(s)", len(items))
        return self._scan(items, started)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def evaluate(self, item: ScanItem, rules: Sequence[Rule]) -> List[Finding]:
        """Run ``rules`` against one unit; never raises for a misbehaving rule."""

        if isinstance(item, ParseError):
            return [parse_error_finding(item)]

        findings: List[Finding] = []
        for rule in rules:
            try:
                produced = self._check(rule, item)
            except RuleEvaluationError as exc:
                logger.warning("%s", exc)
                logger.debug("Rule failure details", exc_info=exc.cause)
                findings.append(rule_error_finding(exc))
                continue
            findings.extend(produced)
        return findings

    def _check(self, rule: Rule, unit: SourceUnit) -> List[Finding]:
        try:
            produced = list(rule.check(unit))
            for finding in produced:
                _validate_finding(rule, unit, finding)
        except Exception as exc:
            raise RuleEvaluationError(rule.id, unit.identifier, exc) from exc
        if self.honor_nosec:
            produced = [finding for finding in produced if not unit.is_suppressed(finding.line, finding.rule_id)]
        return produced

    def _scan(self, items: List[ScanItem], started: float) -> ScanReport:
        with self.registry.scanning() as rules:
            if self.workers > 1 and len(items) > 1:
                results, incomplete = self._evaluate_parallel(items, rules, started)
            else:
                results, incomplete = self._evaluate_serial(items, rules, started)

        findings = [finding for unit_findings in results for finding in unit_findings]
        if incomplete:
            logger.warning("Scan deadline of %ss expired after %d of %d unit(s)", self.deadline, len(results), len(items))
        return ScanReport.build(
            findings,
            unit_order=[_identifier(item) for item in items],
            rule_order=[rule.id for rule in rules],
            units_scanned=len(results),
            incomplete=incomplete,
        )

    def _remaining(self, started: float) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - (time.monotonic() - started))

    def _evaluate_serial(
        self, items: List[ScanItem], rules: Tuple[Rule, ...], started: float
    ) -> Tuple[List[List[Finding]], bool]:
        results: List[List[Finding]] = []
        for item in items:
            remaining = self._remaining(started)
            if remaining is not None and remaining <= 0:
                return results, True
            results.append(self.evaluate(item, rules))
        return results, False

    def _evaluate_parallel(
        self, items: List[ScanItem], rules: Tuple[Rule, ...], started: float
    ) -> Tuple[List[List[Finding]], bool]:
        executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="codeguard")
        pending = set()
        try:
            futures = [executor.submit(self.evaluate, item, rules) for item in items]
            done, pending = wait(futures, timeout=self._remaining(started))
            results = [future.result() for future in futures if future in done]
        finally:
            # Do not block on units still running past the deadline.
            executor.shutdown(wait=not pending, cancel_futures=True)
        return results, bool(pending)


def _validate_finding(rule: Rule, unit: SourceUnit, finding: object) -> None:
    """Raise if ``finding`` is not a well-formed finding of ``rule`` on ``unit``."""

    if not isinstance(finding, Finding):
        raise TypeError(f"emitted {type(finding).__name__} instead of a Finding")
    if finding.rule_id != rule.id:
        raise ValueError(f"emitted a finding for foreign rule {finding.rule_id}")
    if finding.source_unit_id != unit.identifier:
        raise ValueError(f"emitted a finding for foreign unit {finding.source_unit_id}")
    if not isinstance(finding.severity, Severity) or not isinstance(finding.confidence, Confidence):
        raise TypeError(f"emitted invalid levels {finding.severity!r}/{finding.confidence!r}")
    if isinstance(finding.line, bool) or not isinstance(finding.line, int):
        raise TypeError(f"emitted a non-integer line {finding.line!r}")
    if not isinstance(finding.message, str):
        raise TypeError(f"emitted a non-string message {finding.message!r}")


def _identifier(item: ScanItem) -> str:
    return item.unit_id if isinstance(item, ParseError) else item.identifier


def scan(
    units: Sequence[SourceUnit],
    rules: Union[RuleRegistry, Iterable[Rule]],
    workers: int = 1,
    deadline: Optional[float] = None,
) -> ScanReport:
    """Scan already parsed ``units`` with ``rules`` and return the sorted report."""

    registry = rules if isinstance(rules, RuleRegistry) else RuleRegistry(rules)
    return Scanner(registry, workers=workers, deadline=deadline).scan(units)
