"""Mover module: single-item copy and move with verification."""

from .executor import (
    Operation,
    TransferExecutor,
    TransferOutcome,
    TransferRequest,
    TransferStatus,
    copy_exclusive,
    copy_tree_exclusive,
)

__all__ = [
    "Operation",
    "TransferExecutor",
    "TransferOutcome",
    "TransferRequest",
    "TransferStatus",
    "copy_exclusive",
    "copy_tree_exclusive",
]
