"""Path confinement for source and destination zones."""

from .path_guard import (
    PathGuard,
    PathValidationResult,
    Zone,
    is_within,
    normalize_separators,
    sanitize_relative,
)

__all__ = [
    "PathGuard",
    "PathValidationResult",
    "Zone",
    "is_within",
    "normalize_separators",
    "sanitize_relative",
]
