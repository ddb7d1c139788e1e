"""Allow ``python -m covercheck``."""

from covercheck.cli import cli

if __name__ == "__main__":
    cli(prog_name="covercheck")
