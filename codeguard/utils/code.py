"""Source code helper utilities."""

from __future__ import annotations

from fnmatch import fnmatch
from pathlib import Path
from typing import Generator, Iterable


def is_excluded(path: Path, patterns: Iterable[str]) -> bool:
    """Match ``patterns`` against the whole path and against each of its parts."""

    text = path.as_posix()
    for pattern in patterns:
        if fnmatch(text, pattern) or any(fnmatch(part, pattern) for part in path.parts):
            return True
    return False


def iter_code_files(
    root_paths: Iterable[str],
    extensions: tuple[str, ...] = (".py",),
    exclude: Iterable[str] = (),
) -> Generator[Path, None, None]:
    """Yield code files beneath the provided paths in a stable order.

    A path naming a file is yielded as-is, whatever its suffix.
    """

    exclude = tuple(exclude)
    for root in root_paths:
        root_path = Path(root)
        if root_path.is_file():
            if not is_excluded(root_path, exclude):
                yield root_path
            continue
        for path in sorted(root_path.rglob("*")):
            if path.suffix in extensions and path.is_file() and not is_excluded(path, exclude):
                yield path
