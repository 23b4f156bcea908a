"""Batch request models."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..guard import normalize_separators
from ..mover import Operation, TransferRequest


class FileEntry(BaseModel):
    """One source/destination pair of a batch request."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source_path: str = Field(alias="sourcePath", min_length=1)
    destination_path: str = Field(alias="destinationPath")


def parse_file_entries(data) -> list[FileEntry]:
    """
    Validate only the file pairs of a request.

    Accepts a mapping with a ``files`` list or a bare list; the operation and
    overwrite flag are not needed for read-only checks.

    Raises:
        ValidationError: If the file list is missing or malformed.
    """
    if isinstance(data, dict):
        data = data.get("files")
    if not data or not isinstance(data, list):
        raise ValidationError("files array is required")
    try:
        return [FileEntry.model_validate(entry) for entry in data]
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid batch request: {e}") from e


class BatchRequest(BaseModel):
    """A copy or move of an ordered list of files."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    operation: Operation
    overwrite: bool = False
    files: list[FileEntry] = Field(min_length=1)

    @classmethod
    def parse(cls, data: dict) -> "BatchRequest":
        """
        Validate raw request data.

        Raises:
            ValidationError: If the request is malformed.
        """
        if not isinstance(data, dict):
            raise ValidationError("Batch request must be a mapping")
        if not data.get("files") or not isinstance(data.get("files"), list):
            raise ValidationError("files array is required")
        if data.get("operation") not in (Operation.COPY.value, Operation.MOVE.value):
            raise ValidationError("operation must be 'copy' or 'move'")
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid batch request: {e}") from e

    def to_requests(self) -> list[TransferRequest]:
        """Expand into immutable per-item requests."""
        return [
            TransferRequest(
                source_path=entry.source_path,
                destination_path=entry.destination_path,
                operation=self.operation,
                overwrite_allowed=self.overwrite,
            )
            for entry in self.files
        ]


def requests_into_folder(
    source_paths: list[str],
    destination_folder: str,
    operation: Operation = Operation.MOVE,
    overwrite: bool = False,
) -> list[TransferRequest]:
    """
    Build requests that place each source into ``destination_folder``
    under its own base name.
    """
    if not source_paths:
        raise ValidationError("Source paths are required")

    folder = normalize_separators(destination_folder).rstrip("/")
    requests = []
    for source in source_paths:
        name = normalize_separators(source).rstrip("/").split("/")[-1]
        if not name or name in (".", ".."):
            raise ValidationError(f"Invalid source: {source}")
        destination = f"{folder}/{name}" if folder else name
        requests.append(
            TransferRequest(
                source_path=source,
                destination_path=destination,
                operation=operation,
                overwrite_allowed=overwrite,
            )
        )
    return requests
