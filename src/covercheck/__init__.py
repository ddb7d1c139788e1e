"""covercheck: fail a ``go test`` run when statement coverage is too low."""

__version__ = "0.1.0"
