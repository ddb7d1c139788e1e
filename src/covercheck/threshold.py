"""Pass/fail decision for a measured coverage percentage."""

from __future__ import annotations

from covercheck.errors import CoverageThresholdError

# Absorbs float rounding in the percentage, so 79.999 still meets 80.0.
COVERAGE_EPSILON = 0.001


def meets_threshold(coverage: float, required: float) -> bool:
    """Return True if *coverage* satisfies *required* within ``COVERAGE_EPSILON``."""
    return coverage + COVERAGE_EPSILON >= required


def format_failure(coverage: float, required: float, package: str = "") -> str:
    """Render the one-line failure message, prefixed with a GitHub warning annotation."""
    return f"{package}::warning:Code coverage {coverage:.3f} less than required {required:f}"


def check_threshold(coverage: float, required: float, *, package: str = "") -> None:
    """Raise ``CoverageThresholdError`` when *coverage* is below *required*.

    Args:
        coverage: Measured statement coverage percentage.
        required: Minimum acceptable percentage; ``0`` always passes.
        package: Label identifying what was tested, used in the message.
    """
    if meets_threshold(coverage, required):
        return
    raise CoverageThresholdError(
        format_failure(coverage, required, package),
        coverage=coverage,
        required=required,
        package=package,
    )
