"""Severity and confidence levels for scanner findings."""

from __future__ import annotations

from enum import Enum
from typing import Union

_RANKS = {"LOW": 0, "MEDIUM": 1, "HIGH": 2}


class _Level(str, Enum):
    """Closed three-valued level shared by severity and confidence."""

    @property
    def rank(self) -> int:
        """Return an integer ranking, LOW < MEDIUM < HIGH."""

        return _RANKS[self.value]

    def at_least(self, other: "_Level") -> bool:
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: Union[str, "_Level"]):
        """Accept a member or a case-insensitive level name."""

        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                pass
        choices = ", ".join(member.value.lower() for member in cls)
        raise ValueError(f"Invalid {cls.__name__.lower()} {value!r}; expected one of: {choices}")


class Severity(_Level):
    """Potential impact if a finding is a real issue."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Confidence(_Level):
    """Certainty that a finding is a true positive."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


LEVEL_ORDER = ("HIGH", "MEDIUM", "LOW")
