import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from ..domain.errors import CorruptMetadataError
from .platform import ProfilePlatformAdapter

METADATA_FILENAME = "metadata.json"


class MetadataStore:
    """handles persistence of a single profile's ``metadata.json``."""

    def __init__(self, profile_dir: Path, platform: ProfilePlatformAdapter = None):
        self.profile_dir = Path(profile_dir)
        self.metadata_file = self.profile_dir / METADATA_FILENAME
        self.platform = platform or ProfilePlatformAdapter()

    def exists(self) -> bool:
        return self.metadata_file.is_file()

    def load(self) -> dict:
        """
        load the metadata document.

        raises:
            FileNotFoundError: if the profile has no metadata yet
            CorruptMetadataError: if the file is not a JSON object
        """
        try:
            data = self.platform.read_json(self.metadata_file)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptMetadataError(str(self.metadata_file), [str(e)]) from e

        if not isinstance(data, dict):
            raise CorruptMetadataError(
                str(self.metadata_file), [f"expected object, got {type(data).__name__}"]
            )
        return data

    def save(self, data: dict) -> None:
        """save the metadata document."""
        self.platform.write_json(self.metadata_file, data)

    @contextmanager
    def edit(self) -> Iterator[dict]:
        """load, yield for in-place mutation, and save only if the block succeeds."""
        data = self.load()
        yield data
        self.save(data)
