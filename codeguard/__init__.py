"""codeguard: a rule-based static security scanner for Python source."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("codeguard")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0-dev"

__all__ = ["__version__"]
