"""Scan configuration: defaults, YAML loading and validation."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .errors import ConfigurationError
from .severity import Confidence, Severity
from .utils import read_yaml_file

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".codeguard.yaml"

DEFAULT_SENSITIVE_MODULES: Mapping[str, Tuple[str, ...]] = {
    "B403": ("pickle", "cPickle", "dill", "shelve"),
    "B404": ("subprocess",),
    "B405": ("xml.etree.cElementTree", "xml.etree.ElementTree"),
}
DEFAULT_WEAK_HASH_NAMES = (
    "hashlib.md5",
    "hashlib.sha1",
    "Crypto.Hash.MD5.new",
    "Crypto.Hash.SHA.new",
    "Cryptodome.Hash.MD5.new",
    "Cryptodome.Hash.SHA.new",
    "cryptography.hazmat.primitives.hashes.MD5",
    "cryptography.hazmat.primitives.hashes.SHA1",
)
DEFAULT_INSECURE_RANDOM_NAMES = (
    "random.random",
    "random.randrange",
    "random.randint",
    "random.choice",
    "random.choices",
    "random.uniform",
    "random.triangular",
    "random.randbytes",
    "random.sample",
    "random.getrandbits",
)
DEFAULT_SECRET_NAME_PATTERNS = (
    r"pas+wo?r?d",
    r"pass(phrase)?$",
    r"pwd",
    r"token",
    r"secrete?",
)
DEFAULT_HTTP_REQUEST_NAMES = tuple(
    f"{module}.{method}"
    for module in ("requests", "httpx")
    for method in ("get", "options", "head", "post", "put", "patch", "delete", "request", "stream")
    if not (module == "requests" and method == "stream")
)


@dataclass(frozen=True)
class ScanSettings:
    """Everything a scan invocation can be told."""

    rules: Tuple[str, ...] = ()
    min_severity: Severity = Severity.LOW
    min_confidence: Confidence = Confidence.LOW
    fail_on: Severity = Severity.HIGH
    sensitive_modules: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: dict(DEFAULT_SENSITIVE_MODULES))
    weak_hash_names: Tuple[str, ...] = DEFAULT_WEAK_HASH_NAMES
    insecure_random_names: Tuple[str, ...] = DEFAULT_INSECURE_RANDOM_NAMES
    secret_name_patterns: Tuple[str, ...] = DEFAULT_SECRET_NAME_PATTERNS
    http_request_names: Tuple[str, ...] = DEFAULT_HTTP_REQUEST_NAMES
    exclude: Tuple[str, ...] = ()
    workers: int = 1
    deadline: Optional[float] = None
    ignore_nosec: bool = False

    def merge(self, overrides: Mapping[str, Any]) -> "ScanSettings":
        """Return a copy with every non-``None`` override applied and validated."""

        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **_coerce(values)).validated()

    def validated(self) -> "ScanSettings":
        if self.fail_on.rank < self.min_severity.rank:
            raise ConfigurationError(
                f"fail_on={self.fail_on.value.lower()} is below min_severity={self.min_severity.value.lower()}; "
                "findings hidden from the report would never trip the gate"
            )
        if self.workers < 1:
            raise ConfigurationError(f"workers must be at least 1, got {self.workers}")
        if self.deadline is not None and self.deadline <= 0:
            raise ConfigurationError(f"deadline must be positive, got {self.deadline}")
        for pattern in self.secret_name_patterns:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ConfigurationError(f"Invalid secret name pattern {pattern!r}: {exc}") from exc
        return self


_FIELD_NAMES = {item.name for item in fields(ScanSettings)}
_NAME_LIST_FIELDS = (
    "rules",
    "weak_hash_names",
    "insecure_random_names",
    "secret_name_patterns",
    "http_request_names",
    "exclude",
)


def _as_tuple(key: str, value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(str(item) for item in value)
    raise ConfigurationError(f"{key} must be a string or a list of strings")


def _coerce(values: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(values) - _FIELD_NAMES)
    if unknown:
        raise ConfigurationError(f"Unknown configuration option(s): {', '.join(unknown)}")

    coerced = dict(values)
    try:
        for key in ("min_severity", "fail_on"):
            if key in coerced:
                coerced[key] = Severity.parse(coerced[key])
        if "min_confidence" in coerced:
            coerced["min_confidence"] = Confidence.parse(coerced["min_confidence"])
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    for key in _NAME_LIST_FIELDS:
        if key in coerced:
            coerced[key] = _as_tuple(key, coerced[key])
    if "rules" in coerced:
        coerced["rules"] = tuple(rule_id.upper() for rule_id in coerced["rules"])

    if "sensitive_modules" in coerced:
        modules = coerced["sensitive_modules"]
        if not isinstance(modules, Mapping):
            raise ConfigurationError("sensitive_modules must map rule IDs to module names")
        merged = dict(DEFAULT_SENSITIVE_MODULES)
        for rule_id, names in modules.items():
            key = str(rule_id).upper()
            if key not in DEFAULT_SENSITIVE_MODULES:
                raise ConfigurationError(
                    f"sensitive_modules.{rule_id} is not an import rule; expected one of "
                    f"{', '.join(DEFAULT_SENSITIVE_MODULES)}"
                )
            merged[key] = _as_tuple(f"sensitive_modules.{rule_id}", names)
        coerced["sensitive_modules"] = merged

    try:
        if "workers" in coerced:
            coerced["workers"] = int(coerced["workers"])
        if "deadline" in coerced:
            coerced["deadline"] = float(coerced["deadline"])
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid numeric option: {exc}") from exc
    if "ignore_nosec" in coerced and not isinstance(coerced["ignore_nosec"], bool):
        raise ConfigurationError(f"ignore_nosec must be true or false, got {coerced['ignore_nosec']!r}")
    return coerced


def load_settings(path: Optional[Path] = None, base: Optional[ScanSettings] = None) -> ScanSettings:
    """Load settings from a YAML file, falling back to defaults when it is absent."""

    base = base or ScanSettings()
    if path is None:
        path = Path(DEFAULT_CONFIG_FILENAME)
        if not path.exists():
            return base.validated()
    elif not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        data = read_yaml_file(path)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Could not parse {path}: {exc}") from exc
    if data is None:
        logger.debug("Configuration file %s is empty, using defaults", path)
        return base.validated()
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration at {path} is not a mapping")
    logger.debug("Loaded configuration from %s: %s", path, sorted(data))
    return base.merge(data)
