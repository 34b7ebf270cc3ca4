import threading
import time
from dataclasses import dataclass, replace

import pytest

from codeguard.engine import Scanner, scan
from codeguard.result import PARSE_ERROR, RULE_ERROR, Finding
from codeguard.rules import Rule, RuleRegistry, default_registry
from codeguard.severity import Confidence, Severity
from codeguard.syntax import SourceText, parse_source

VULNERABLE = "\n".join(
    [
        "import pickle",
        "import subprocess",
        'password = "hunter2"',
        "requests.get(url, verify=False)",
        "hashlib.md5(b'x')",
        "try:",
        "    run()",
        "except Exception:",
        "    pass",
    ]
)


class ExplodingRule(Rule):
    def check(self, unit):
        raise RuntimeError("boom")


class ForeignIdRule(Rule):
    def check(self, unit):
        return [
            Finding(
                rule_id="OTHER",
                severity=Severity.LOW,
                confidence=Confidence.LOW,
                source_unit_id=unit.identifier,
                line=1,
                message="not mine",
            )
        ]


@dataclass(frozen=True)
class MalformedRule(Rule):
    overrides: tuple = ()

    def check(self, unit):
        finding = Finding(
            rule_id=self.id,
            severity=self.severity,
            confidence=self.confidence,
            source_unit_id=unit.identifier,
            line=1,
            message="malformed",
        )
        return [replace(finding, **dict(self.overrides))]


class BlockingRule(Rule):
    def check(self, unit):
        release.wait(timeout=5)
        return []


class SleepingRule(Rule):
    def check(self, unit):
        time.sleep(0.2)
        return []


release = threading.Event()


def _exploding(rule_id="ZZ1"):
    return ExplodingRule(id=rule_id, title="explodes", severity=Severity.HIGH, confidence=Confidence.HIGH)


def _units():
    return [
        parse_source("b.py", VULNERABLE),
        parse_source("a.py", "import subprocess\nrandom.random()\n"),
    ]


def test_scan_is_deterministic():
    first = scan(_units(), default_registry())
    second = scan(_units(), default_registry())

    assert first == second
    assert first.to_dict() == second.to_dict()


def test_findings_follow_unit_order_then_line_then_rule_order():
    report = scan(_units(), default_registry())

    keys = [(f.source_unit_id, f.line, f.rule_id) for f in report.findings]

    assert keys == [
        ("b.py", 1, "B403"),
        ("b.py", 2, "B404"),
        ("b.py", 3, "B105"),
        ("b.py", 4, "B501"),
        ("b.py", 4, "B113"),
        ("b.py", 5, "B303"),
        ("b.py", 8, "B110"),
        ("a.py", 1, "B404"),
        ("a.py", 2, "B311"),
    ]
    assert report.units_scanned == 2
    assert report.incomplete is False


def test_failing_rule_is_isolated_per_unit_and_rule():
    registry = default_registry()
    registry.register(_exploding())

    report = scan(_units(), registry)

    errors = [f for f in report.findings if f.rule_id == RULE_ERROR]
    assert [f.source_unit_id for f in errors] == ["b.py", "a.py"]
    assert all(f.severity is Severity.LOW and f.confidence is Confidence.LOW for f in errors)
    assert "ZZ1" in errors[0].message
    assert len([f for f in report.findings if f.rule_id != RULE_ERROR]) == 9


def test_failing_rule_registered_first_does_not_block_later_rules():
    registry = RuleRegistry([_exploding()])
    for rule in default_registry():
        registry.register(rule)

    report = scan([parse_source("a.py", "import subprocess\n")], registry)

    assert [f.rule_id for f in report.findings] == [RULE_ERROR, "B404"]


def test_findings_for_foreign_rule_ids_are_rejected():
    registry = RuleRegistry(
        [ForeignIdRule(id="F1", title="foreign", severity=Severity.LOW, confidence=Confidence.LOW)]
    )

    report = scan([parse_source("a.py", "x = 1\n")], registry)

    assert [f.rule_id for f in report.findings] == [RULE_ERROR]


@pytest.mark.parametrize(
    "overrides",
    [
        (("line", None),),
        (("severity", "HIGH"),),
        (("confidence", None),),
        (("message", None),),
        (("source_unit_id", "elsewhere.py"),),
    ],
)
def test_malformed_findings_become_rule_errors(overrides):
    registry = default_registry()
    registry.register(
        MalformedRule(
            id="BAD", title="malformed", severity=Severity.LOW, confidence=Confidence.LOW, overrides=overrides
        )
    )

    report = scan([parse_source("a.py", "x = 1\n"), parse_source("b.py", "import subprocess\n")], registry)

    assert [(f.source_unit_id, f.rule_id) for f in report.findings] == [
        ("a.py", RULE_ERROR),
        ("b.py", RULE_ERROR),
        ("b.py", "B404"),
    ]
    assert "BAD" in report.findings[0].message


def test_rule_returning_non_findings_becomes_rule_error():
    class JunkRule(Rule):
        def check(self, unit):
            return ["not a finding"]

    registry = RuleRegistry([JunkRule(id="JUNK", title="junk", severity=Severity.LOW, confidence=Confidence.LOW)])

    report = scan([parse_source("a.py", "x = 1\n")], registry)

    assert [f.rule_id for f in report.findings] == [RULE_ERROR]
    assert "instead of a Finding" in report.findings[0].message


def test_unparsable_source_becomes_diagnostic_and_scan_continues():
    scanner = Scanner(default_registry())

    report = scanner.scan_sources(
        [
            SourceText("broken.py", "def broken(:\n    pass\n"),
            SourceText("ok.py", "import pickle\n"),
        ]
    )

    assert [(f.source_unit_id, f.rule_id) for f in report.findings] == [
        ("broken.py", PARSE_ERROR),
        ("ok.py", "B403"),
    ]
    parse_error = report.findings[0]
    assert parse_error.line == 1
    assert parse_error.severity is Severity.LOW
    assert parse_error.confidence is Confidence.HIGH
    assert report.units_scanned == 2


def test_nosec_suppresses_matching_findings():
    source = 'password = "a"  # nosec\ntoken = "b"  # nosec B303\nimport pickle  # nosec B403\n'

    report = scan([parse_source("n.py", source)], default_registry())
    unsuppressed = Scanner(default_registry(), honor_nosec=False).scan([parse_source("n.py", source)])

    assert [(f.line, f.rule_id) for f in report.findings] == [(2, "B105")]
    assert unsuppressed.total == 3


def test_parallel_scan_matches_serial_scan():
    units = [parse_source(f"mod{index:02d}.py", VULNERABLE) for index in range(12)]

    serial = scan(units, default_registry())
    parallel = scan(units, default_registry(), workers=4)

    assert parallel == serial
    assert parallel.units_scanned == 12


def test_parallel_deadline_returns_partial_report():
    release.clear()
    registry = RuleRegistry(
        [BlockingRule(id="SLOW", title="slow", severity=Severity.LOW, confidence=Confidence.LOW)]
    )
    units = [parse_source(f"m{index}.py", "x = 1\n") for index in range(3)]

    try:
        report = scan(units, registry, workers=2, deadline=0.05)
    finally:
        release.set()

    assert report.incomplete is True
    assert report.units_scanned < 3


def test_serial_deadline_stops_between_units():
    registry = RuleRegistry(
        [SleepingRule(id="SLOW", title="slow", severity=Severity.LOW, confidence=Confidence.LOW)]
    )
    units = [parse_source(f"m{index}.py", "x = 1\n") for index in range(3)]

    report = scan(units, registry, deadline=0.05)

    assert report.incomplete is True
    assert report.units_scanned == 1


def test_scan_paths_discovers_python_files(tmp_path):
    package = tmp_path / "pkg"
    package.mkdir()
    (package / "one.py").write_text("import subprocess\n", encoding="utf-8")
    (package / "notes.txt").write_text("import subprocess\n", encoding="utf-8")
    skipped = package / "vendor"
    skipped.mkdir()
    (skipped / "two.py").write_text("import pickle\n", encoding="utf-8")

    report = Scanner(default_registry()).scan_paths([str(package)], exclude=["vendor"])

    assert report.units_scanned == 1
    assert [f.rule_id for f in report.findings] == ["B404"]
    assert report.findings[0].source_unit_id.endswith("pkg/one.py")


def test_deeply_nested_source_does_not_abort_the_scan():
    deep = "x = " + "+".join(["1"] * 100000) + "\n"

    report = Scanner(default_registry()).scan_sources(
        [SourceText("deep.py", deep), SourceText("ok.py", "import pickle\n")]
    )

    assert [(f.source_unit_id, f.rule_id) for f in report.findings] == [
        ("deep.py", PARSE_ERROR),
        ("ok.py", "B403"),
    ]
    assert report.units_scanned == 2


def test_scan_paths_honours_byte_order_mark(tmp_path):
    source = tmp_path / "bom.py"
    source.write_bytes(b"\xef\xbb\xbfimport pickle\nrequests.get(u, verify=False)\n")

    report = Scanner(default_registry()).scan_paths([str(source)])

    assert [(f.line, f.rule_id) for f in report.findings] == [(1, "B403"), (2, "B501"), (2, "B113")]
    assert report.fails()


def test_scan_paths_honours_coding_declaration(tmp_path):
    source = tmp_path / "latin.py"
    source.write_bytes("# -*- coding: latin-1 -*-\npassword = 'h\xe9nter2'\n".encode("latin-1"))

    report = Scanner(default_registry()).scan_paths([str(source)])

    assert [(f.line, f.rule_id) for f in report.findings] == [(2, "B105")]
    assert "h\xe9nter2" in report.findings[0].message
