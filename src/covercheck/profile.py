"""Go cover profile parsing and statement-coverage aggregation.

A cover profile is what ``go test -coverprofile`` writes: a ``mode:`` header
followed by one block per line::

    mode: atomic
    example.com/pkg/foo.go:5.2,7.4 2 1

i.e. ``file:startLine.startCol,endLine.endCol numStmts count``.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from covercheck.errors import ProfileParseError

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────

MODE_PREFIX = "mode: "
VALID_MODES = frozenset({"set", "count", "atomic"})

DEFAULT_PACKAGE_NAME = ""

_BLOCK_LINE_REGEX = re.compile(r"^(.+):(\d+)\.(\d+),(\d+)\.(\d+) (\d+) (\d+)$")
_MIN_PACKAGE_FIELDS = 2


# ── Data model ───────────────────────────────────────────────────


@dataclass(frozen=True)
class Block:
    """A single coverage block within a source file."""

    start_line: int
    start_col: int
    end_line: int
    end_col: int
    num_stmt: int
    count: int

    @property
    def is_covered(self) -> bool:
        """Return True if the block was executed at least once."""
        return self.count > 0

    @property
    def position(self) -> tuple[int, int, int, int]:
        return (self.start_line, self.start_col, self.end_line, self.end_col)


@dataclass
class FileProfile:
    """All coverage blocks recorded for one source file."""

    file_name: str
    mode: str
    blocks: list[Block] = field(default_factory=list)


@dataclass(frozen=True)
class CoverageSummary:
    """Statement totals across every block of a profile."""

    total_statements: int = 0
    covered_statements: int = 0

    @property
    def percentage(self) -> float:
        """Return statement coverage (0.0-100.0).

        A profile without statements reports exactly ``0.0``.
        """
        if self.total_statements == 0:
            return 0.0
        return self.covered_statements / self.total_statements * 100


# ── Parsing ──────────────────────────────────────────────────────


def _parse_error(path: str, message: str, cause: BaseException | None = None) -> ProfileParseError:
    return ProfileParseError(
        f"cannot parse coverage profile file {path}",
        cause if cause is not None else ValueError(message),
        path=path,
    )


def _parse_mode(path: str, line: str) -> str:
    if not line.startswith(MODE_PREFIX) or line == MODE_PREFIX:
        raise _parse_error(path, f"bad mode line: {line!r}")
    mode = line[len(MODE_PREFIX) :].strip()
    if mode not in VALID_MODES:
        raise _parse_error(path, f"unknown cover mode {mode!r}")
    return mode


def _merge_blocks(path: str, file_name: str, mode: str, blocks: list[Block]) -> list[Block]:
    """Sort blocks by position and fold duplicates of the same block together.

    Duplicates appear when profiles from several packages are concatenated.
    In ``set`` mode the counts are OR-ed, otherwise they are summed.
    """
    ordered = sorted(blocks, key=lambda b: (b.start_line, b.start_col))
    merged: list[Block] = []
    for block in ordered:
        if merged and merged[-1].position == block.position:
            last = merged[-1]
            if last.num_stmt != block.num_stmt:
                raise _parse_error(
                    path,
                    f"inconsistent statement count for {file_name}:"
                    f"{block.start_line}.{block.start_col}: {last.num_stmt} vs {block.num_stmt}",
                )
            if mode == "set":
                count = 1 if (last.count or block.count) else 0
            else:
                count = last.count + block.count
            merged[-1] = Block(*last.position, num_stmt=last.num_stmt, count=count)
            continue
        merged.append(block)
    return merged


def parse_profiles(coverprofile: str | Path) -> list[FileProfile]:
    """Parse a Go cover profile into per-file block lists.

    Args:
        coverprofile: Path of the profile written by ``go test -coverprofile``.

    Returns:
        One ``FileProfile`` per source file, ordered by file name.

    Raises:
        ProfileParseError: If the file cannot be read or a line does not
            match the cover profile format.
    """
    path = str(coverprofile)
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise _parse_error(path, "", exc) from exc

    mode = ""
    blocks_by_file: dict[str, list[Block]] = {}

    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.rstrip("\r")
        if not mode:
            mode = _parse_mode(path, line)
            continue
        if not line.strip():
            continue
        if line.startswith(MODE_PREFIX):
            # Concatenated profiles repeat the header.
            if _parse_mode(path, line) != mode:
                raise _parse_error(path, f"line {line_no}: mode changed from {mode!r}")
            continue

        match = _BLOCK_LINE_REGEX.match(line)
        if not match:
            raise _parse_error(path, f"line {line_no} doesn't match expected format: {line!r}")
        file_name, *numbers = match.groups()
        sl, sc, el, ec, num_stmt, count = (int(n) for n in numbers)
        blocks_by_file.setdefault(file_name, []).append(
            Block(sl, sc, el, ec, num_stmt=num_stmt, count=count)
        )

    profiles = [
        FileProfile(
            file_name=file_name,
            mode=mode,
            blocks=_merge_blocks(path, file_name, mode, blocks),
        )
        for file_name, blocks in sorted(blocks_by_file.items())
    ]
    logger.debug("Parsed %d file profile(s) from %s (mode=%s)", len(profiles), path, mode)
    return profiles


# ── Aggregation ──────────────────────────────────────────────────


def summarize(profiles: list[FileProfile]) -> CoverageSummary:
    """Sum total and covered statements across all blocks."""
    total = 0
    covered = 0
    for profile in profiles:
        for block in profile.blocks:
            total += block.num_stmt
            if block.is_covered:
                covered += block.num_stmt
    return CoverageSummary(total_statements=total, covered_statements=covered)


def calculate_coverage(coverprofile: str | Path) -> float:
    """Return the statement coverage percentage recorded in *coverprofile*.

    Raises:
        ProfileParseError: If the profile cannot be parsed.
    """
    return summarize(parse_profiles(coverprofile)).percentage


# ── Package label ────────────────────────────────────────────────


def guess_package_name(coverprofile: str | Path) -> str:
    """Best-effort label for the package a profile was recorded for.

    Reads only the first block line (the second line of the file) and
    returns the directory part of its file path.  This is advisory: any
    problem yields ``DEFAULT_PACKAGE_NAME`` instead of an error.
    """
    try:
        with open(coverprofile, encoding="utf-8") as f:
            f.readline()
            next_line = f.readline()
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Unable to read %s for package name: %s", coverprofile, exc)
        return DEFAULT_PACKAGE_NAME

    if not next_line:
        return DEFAULT_PACKAGE_NAME
    line_parts = next_line.rstrip("\r\n").split(":")
    if len(line_parts) < _MIN_PACKAGE_FIELDS:
        return DEFAULT_PACKAGE_NAME
    return os.path.dirname(line_parts[0]) or "."
