import pytest

from codeguard.config import DEFAULT_SENSITIVE_MODULES, ScanSettings, load_settings
from codeguard.errors import ConfigurationError
from codeguard.severity import Confidence, Severity


def test_defaults_match_catalog_profile():
    settings = ScanSettings()

    assert settings.fail_on is Severity.HIGH
    assert settings.min_severity is Severity.LOW
    assert settings.sensitive_modules["B404"] == ("subprocess",)
    assert "hashlib.md5" in settings.weak_hash_names
    assert "requests.get" in settings.http_request_names


def test_load_settings_reads_yaml(tmp_path):
    config = tmp_path / "codeguard.yaml"
    config.write_text(
        "\n".join(
            [
                "rules: [b105, B303]",
                "min_severity: medium",
                "min_confidence: High",
                "fail_on: medium",
                "sensitive_modules:",
                "  B404: [subprocess, os]",
                "weak_hash_names: hashlib.md5",
                "workers: 3",
                "deadline: 12.5",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_settings(config)

    assert settings.rules == ("B105", "B303")
    assert settings.min_severity is Severity.MEDIUM
    assert settings.min_confidence is Confidence.HIGH
    assert settings.fail_on is Severity.MEDIUM
    assert settings.sensitive_modules["B404"] == ("subprocess", "os")
    assert settings.sensitive_modules["B403"] == DEFAULT_SENSITIVE_MODULES["B403"]
    assert settings.weak_hash_names == ("hashlib.md5",)
    assert settings.workers == 3
    assert settings.deadline == 12.5


def test_empty_config_file_uses_defaults(tmp_path):
    config = tmp_path / "empty.yaml"
    config.write_text("", encoding="utf-8")

    assert load_settings(config) == ScanSettings()


@pytest.mark.parametrize(
    "content",
    [
        "- just\n- a list\n",
        "unknown_option: 1\n",
        "min_severity: critical\n",
        "secret_name_patterns: ['(unclosed']\n",
        "min_severity: high\nfail_on: low\n",
        "workers: 0\n",
        "rules: {B105: true}\n",
        "key: [unterminated\n",
        "ignore_nosec: 'false'\n",
        "ignore_nosec: 1\n",
        "sensitive_modules:\n  B4O4: [os]\n",
    ],
)
def test_invalid_configuration_is_rejected(tmp_path, content):
    config = tmp_path / "bad.yaml"
    config.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_settings(config)


def test_missing_explicit_config_is_an_error(tmp_path):
    with pytest.raises(ConfigurationError):
        load_settings(tmp_path / "absent.yaml")


def test_merge_ignores_unset_overrides():
    settings = ScanSettings(workers=2).merge({"workers": None, "min_confidence": "medium"})

    assert settings.workers == 2
    assert settings.min_confidence is Confidence.MEDIUM


def test_ignore_nosec_accepts_yaml_booleans(tmp_path):
    config = tmp_path / "codeguard.yaml"
    config.write_text("ignore_nosec: false\n", encoding="utf-8")

    assert load_settings(config).ignore_nosec is False
    assert ScanSettings().merge({"ignore_nosec": True}).ignore_nosec is True


def test_sensitive_module_keys_are_case_insensitive():
    settings = ScanSettings().merge({"sensitive_modules": {"b405": ["lxml"]}})

    assert settings.sensitive_modules["B405"] == ("lxml",)
