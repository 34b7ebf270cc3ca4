from codeguard.engine import scan
from codeguard.rules import default_registry
from codeguard.config import ScanSettings
from codeguard.syntax import parse_source


def _b105():
    return default_registry(ScanSettings(rules=("B105",)))


def test_literal_password_is_reported():
    unit = parse_source("settings.py", 'password = "P@ssw0rd1234"\n')

    report = scan([unit], _b105())

    assert len(report.findings) == 1
    finding = report.findings[0]
    assert finding.rule_id == "B105"
    assert finding.line == 1
    assert "'P@ssw0rd1234'" in finding.message
    assert finding.severity.value == "LOW"
    assert finding.confidence.value == "MEDIUM"


def test_password_from_function_call_is_not_reported():
    unit = parse_source("settings.py", "password = get_secret()\n")

    report = scan([unit], _b105())

    assert report.findings == ()


def test_attribute_targets_and_case_insensitive_names():
    unit = parse_source(
        "client.py",
        'class Client:\n    def __init__(self):\n        self.API_TOKEN = "abc123"\n        self.name = "svc"\n',
    )

    report = scan([unit], _b105())

    assert [finding.line for finding in report.findings] == [3]


def test_custom_patterns_replace_defaults():
    settings = ScanSettings(rules=("B105",)).merge({"secret_name_patterns": ["apikey"]})
    unit = parse_source("conf.py", 'APIKEY = "k"\npassword = "p"\n')

    report = scan([unit], default_registry(settings))

    assert [finding.line for finding in report.findings] == [1]


def test_nosec_text_inside_the_literal_does_not_suppress():
    unit = parse_source("settings.py", 'password = "# nosec"\n')

    report = scan([unit], _b105())

    assert [finding.line for finding in report.findings] == [1]
