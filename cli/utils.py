"""Utility functions for CLI operations."""

import sys

from cli.constants import GREEN, RESET


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


class ChunkProgress:
    """Callable that renders chunk upload progress on one stdout line."""

    def __init__(self, label: str, stream=None):
        self.label = label
        self.stream = stream or sys.stdout
        self._finished = False

    def __call__(self, done: int, total: int) -> None:
        progress = (done / total) * 100 if total else 100.0
        self.stream.write(
            f"\rUploading {self.label}: {done}/{total} chunks ({GREEN}{progress:.1f}%{RESET})"
        )
        self.stream.flush()
        if done >= total and not self._finished:
            self._finished = True
            self.stream.write('\n')
            self.stream.flush()
