"""Command-line entry point."""

from bytefeed.cli.main import cli


__all__ = ["cli"]
