"""Pre-flight conflict check: which destinations already exist."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from ..errors import ValidationError
from ..guard import is_within, sanitize_relative
from ..mover import TransferRequest
from ..utils.filesystem import Presence, probe
from ..utils.logging import get_logger
from .requests import FileEntry

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExistingDestination:
    """A request whose destination is already occupied."""

    source_path: str
    destination_path: str
    file_name: str


class ConflictChecker:
    """Reports existing destinations without touching the filesystem."""

    def __init__(self, destination_root: Path | str):
        self.destination_root = os.path.abspath(destination_root)

    def check(self, files: Iterable[FileEntry | TransferRequest]) -> list[ExistingDestination]:
        """
        Find destinations that already exist.

        Entries whose destination is empty after sanitizing, or that would
        land outside the destination zone, are skipped.
        """
        existing: list[ExistingDestination] = []

        for entry in files:
            try:
                relative = sanitize_relative(entry.destination_path)
            except ValidationError:
                continue

            full = os.path.normpath(os.path.join(self.destination_root, relative))
            if not is_within(full, self.destination_root):
                continue

            result = probe(full)
            if result.state is Presence.ERROR:
                logger.warning(
                    f"Could not check destination {entry.destination_path}: {result.error.strerror}"
                )
                continue
            if result.exists:
                existing.append(
                    ExistingDestination(
                        source_path=entry.source_path,
                        destination_path=entry.destination_path,
                        file_name=relative.split("/")[-1],
                    )
                )

        logger.debug(f"Pre-flight check found {len(existing)} existing destination(s)")
        return existing
