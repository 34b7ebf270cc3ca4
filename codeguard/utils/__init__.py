"""Utility helpers for the scanner."""

from .fileio import read_yaml_file, read_source_file
from .code import is_excluded, iter_code_files

__all__ = [
    "read_yaml_file",
    "read_source_file",
    "is_excluded",
    "iter_code_files",
]
