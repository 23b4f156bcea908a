"""
SafeMove - verified file transfers between root-confined zones.

Moves and copies files from a source zone to a destination zone without
letting any path escape its zone, without deleting a source before its copy
is verified, and with per-item progress for long batches.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .config import ConfigManager, SafeMoveConfig
from .core import (
    BatchCoordinator,
    BatchReport,
    BatchRequest,
    CancellationToken,
    ConflictChecker,
    ProgressChannel,
    ProgressEvent,
)
from .errors import (
    ConfigurationError,
    ConflictError,
    FilesystemError,
    IntegrityError,
    SafeMoveError,
    ValidationError,
)
from .guard import PathGuard, PathValidationResult
from .mover import Operation, TransferExecutor, TransferOutcome, TransferRequest, TransferStatus
from .utils.logging import get_logger
from .verify import HashVerifier, VerificationResult

__all__ = [
    "ConfigManager",
    "SafeMoveConfig",
    "get_logger",
    # Guard
    "PathGuard",
    "PathValidationResult",
    # Verify
    "HashVerifier",
    "VerificationResult",
    # Mover
    "Operation",
    "TransferExecutor",
    "TransferOutcome",
    "TransferRequest",
    "TransferStatus",
    # Core
    "BatchCoordinator",
    "BatchReport",
    "BatchRequest",
    "CancellationToken",
    "ConflictChecker",
    "ProgressChannel",
    "ProgressEvent",
    # Errors
    "SafeMoveError",
    "ValidationError",
    "ConflictError",
    "IntegrityError",
    "FilesystemError",
    "ConfigurationError",
]
