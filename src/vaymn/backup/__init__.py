"""Backup module for full-database export and import."""

from .snapshot import (
    DEFAULT_FILENAME,
    build_snapshot,
    dumps_snapshot,
    parse_snapshot,
    write_snapshot,
)

__all__ = [
    "DEFAULT_FILENAME",
    "build_snapshot",
    "dumps_snapshot",
    "parse_snapshot",
    "write_snapshot",
]
