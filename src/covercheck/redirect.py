"""Resolve ``--stdout``/``--stderr`` targets into writable streams.

``"-"`` means pass the parent's stream through, an empty string discards
output and anything else is a file path to create.
"""

from __future__ import annotations

import subprocess
from typing import IO, Any

from covercheck.errors import CheckIOError

PASSTHROUGH = "-"


class DiscardSink:
    """A write-only sink that accepts and drops everything."""

    closed = False

    def write(self, data: Any) -> int:
        return len(data) if data is not None else 0

    def writable(self) -> bool:
        return True

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __repr__(self) -> str:
        return "<DiscardSink>"


DISCARD = DiscardSink()


def for_file(filename: str, dash: Any) -> Any:
    """Return the stream that *filename* names.

    Args:
        filename: ``"-"``, ``""`` or a path.
        dash: Stream returned unchanged for ``"-"`` (usually ``sys.stdout``).

    Raises:
        CheckIOError: If the file cannot be created.
    """
    if filename == PASSTHROUGH:
        return dash
    if filename == "":
        return DISCARD
    try:
        return open(filename, "wb")  # noqa: SIM115
    except OSError as exc:
        raise CheckIOError(f"cannot open {filename}", exc) from exc


def owns_stream(stream: Any, dash: Any) -> bool:
    """Return True if *stream* was opened by ``for_file`` and must be closed by the caller."""
    return stream is not dash and stream is not DISCARD


def child_stream(stream: Any, dash: Any) -> IO[bytes] | int | None:
    """Translate a resolved stream into a ``subprocess`` stdout/stderr argument."""
    if stream is dash:
        return None
    if stream is DISCARD:
        return subprocess.DEVNULL
    return stream
