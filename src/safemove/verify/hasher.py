"""Content digests for files and directory trees, and copy verification."""

import hashlib
from dataclasses import dataclass
from pathlib import Path

from ..utils.filesystem import probe, walk_files
from ..utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of comparing a source with its copy."""

    valid: bool
    error: str | None = None


class HashVerifier:
    """
    Computes deterministic content digests.

    A directory digest folds ``relative_path:file_digest`` lines, in lexical
    order of relative path, into one hash. It therefore ignores traversal
    order but changes when a file's content, name or position changes.
    Empty directories and symlinks do not contribute.
    """

    def __init__(self, algorithm: str = "sha256", chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Initialize the verifier.

        Args:
            algorithm: Any algorithm name accepted by hashlib.new
            chunk_size: Read size used when streaming file contents
        """
        hashlib.new(algorithm)
        self.algorithm = algorithm
        self.chunk_size = chunk_size

    def file_digest(self, path: Path | str) -> str:
        """Stream a file through the hash function and return its hex digest."""
        digest = hashlib.new(self.algorithm)
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(self.chunk_size), b""):
                digest.update(chunk)
        return digest.hexdigest()

    def directory_digest(self, path: Path | str) -> str:
        """Combined digest of every regular file beneath ``path``."""
        root = Path(path)
        combined = hashlib.new(self.algorithm)

        for rel in sorted(walk_files(root)):
            file_hash = self.file_digest(root / rel)
            combined.update(f"{rel}:{file_hash}\n".encode("utf-8"))

        return combined.hexdigest()

    def verify(self, source: Path | str, destination: Path | str) -> VerificationResult:
        """
        Check that ``destination`` holds the same content as ``source``.

        Files are compared by size first and only hashed when sizes agree.
        Directories are always hashed in full.
        """
        src = probe(source)
        dst = probe(destination)
        if not src.exists:
            return VerificationResult(False, "Source missing during verification")
        if not dst.exists:
            return VerificationResult(False, "Destination missing during verification")

        if src.is_dir != dst.is_dir:
            return VerificationResult(False, "Source and destination type mismatch")

        try:
            if src.is_dir:
                if self.directory_digest(source) != self.directory_digest(destination):
                    return VerificationResult(False, "Directory hash mismatch")
            else:
                if src.size != dst.size:
                    return VerificationResult(False, "File size mismatch")
                source_hash = self.file_digest(source)
                dest_hash = self.file_digest(destination)
                logger.debug(f"{self.algorithm} source={source_hash} destination={dest_hash}")
                if source_hash != dest_hash:
                    return VerificationResult(False, "File hash mismatch")
        except OSError as e:
            return VerificationResult(False, f"Verification failed: {e.strerror or e}")

        return VerificationResult(True)
