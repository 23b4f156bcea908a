"""Content hashing and copy verification."""

from .hasher import DEFAULT_CHUNK_SIZE, HashVerifier, VerificationResult

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "HashVerifier",
    "VerificationResult",
]
