"""Command-line interface for SafeMove."""

from .main import cli

__all__ = ["cli"]
