"""Shared progress callback type for batch file operations."""

from collections.abc import Callable

# (processed, total)
ProgressCallback = Callable[[int, int], None]


def noop_progress(_processed: int, _total: int) -> None:
    pass
