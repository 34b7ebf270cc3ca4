"""Exception hierarchy for the scanner."""

from __future__ import annotations

from typing import Optional


class CodeguardError(Exception):
    """Base class for every error raised by codeguard."""


class ConfigurationError(CodeguardError):
    """Invalid scan configuration; raised before any unit is processed."""


class ParseError(CodeguardError):
    """A source unit could not be structurally analyzed."""

    def __init__(self, unit_id: str, line: Optional[int] = None, reason: str = "") -> None:
        self.unit_id = unit_id
        self.line = line or 0
        self.reason = reason or "unparsable source"
        location = f"{unit_id}:{self.line}" if self.line else unit_id
        super().__init__(f"{location}: {self.reason}")


class RuleEvaluationError(CodeguardError):
    """A rule's check raised while evaluating a unit."""

    def __init__(self, rule_id: str, unit_id: str, cause: BaseException) -> None:
        self.rule_id = rule_id
        self.unit_id = unit_id
        self.cause = cause
        super().__init__(f"Rule {rule_id} failed on {unit_id}: {type(cause).__name__}: {cause}")


class DuplicateRuleError(CodeguardError):
    """A rule with the same ID is already registered."""

    def __init__(self, rule_id: str) -> None:
        self.rule_id = rule_id
        super().__init__(f"Rule {rule_id} is already registered")


class RegistryBusyError(CodeguardError):
    """The registry was mutated while a scan was using it."""
