"""Utility modules for SafeMove."""

from .filesystem import Presence, ProbeResult, probe, remove_path, walk_files
from .logging import get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
    "Presence",
    "ProbeResult",
    "probe",
    "remove_path",
    "walk_files",
]
