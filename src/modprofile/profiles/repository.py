import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from pydantic import ValidationError

from ..domain.errors import CorruptMetadataError, NotFoundError
from ..domain.models import Profile
from .legacy import LegacyRegistry
from .platform import ProfilePlatformAdapter
from .store import MetadataStore

logger = logging.getLogger(__name__)

PLUGINS_SUBDIR = ("BepInEx", "plugins")
PLUGIN_EXTENSION = ".dll"


class ProfileRepository:
    """
    one directory per profile under ``<data_dir>/profiles``, each holding a
    ``metadata.json`` and a ``BepInEx/plugins`` directory.
    """

    def __init__(
        self,
        data_dir: Path,
        legacy: Optional[LegacyRegistry] = None,
        platform: Optional[ProfilePlatformAdapter] = None,
    ):
        self.data_dir = Path(data_dir)
        self.platform = platform or ProfilePlatformAdapter()
        self.legacy = legacy
        # closes once the legacy registry no longer needs consulting
        self._migration_done = legacy is None

    @property
    def profiles_dir(self) -> Path:
        return self.platform.ensure_dir(self.data_dir / "profiles")

    def _store(self, profile_dir: Union[str, Path]) -> MetadataStore:
        return MetadataStore(Path(profile_dir), self.platform)

    def read_metadata(self, profile_dir: Union[str, Path]) -> Optional[Profile]:
        """
        read and validate a profile's metadata.

        returns None when the file is missing or invalid; problems are logged,
        never raised, so one corrupt profile cannot break enumeration.
        """
        store = self._store(profile_dir)
        try:
            raw = store.load()
        except FileNotFoundError:
            logger.debug(f"no metadata in {profile_dir}")
            return None
        except (CorruptMetadataError, OSError) as e:
            logger.warning(f"Failed to read metadata for {profile_dir}: {e}")
            return None

        try:
            return Profile.model_validate({**raw, "path": str(profile_dir)})
        except ValidationError as e:
            logger.warning(f"Profile validation failed for {profile_dir}: {e.error_count()} error(s)")
            return None

    def write_metadata(self, profile: Profile) -> None:
        self._store(profile.path).save(profile.to_document())

    def list_profiles(self) -> List[Profile]:
        """
        all readable profiles, most recently launched first.

        directories without valid metadata are migrated from the legacy
        registry while migration is pending, otherwise skipped.
        """
        profiles_dir = self.profiles_dir
        try:
            entries = self.platform.list_dir(profiles_dir)
        except OSError as e:
            logger.debug(f"Failed to read profiles directory: {e}")
            return []

        legacy_map = self._pending_legacy_records()

        migrated_count = 0
        profiles = []
        for entry in entries:
            if not entry.is_dir:
                continue

            profile_dir = self.platform.join(profiles_dir, entry.name)
            profile = self.read_metadata(profile_dir)

            if profile is None and legacy_map:
                legacy_profile = legacy_map.get(entry.name)
                if legacy_profile is not None:
                    profile = legacy_profile.model_copy(update={"path": str(profile_dir)})
                    self.write_metadata(profile)
                    migrated_count += 1
                    logger.info(f"Migrated profile {entry.name} to metadata.json")

            if profile is None:
                continue
            profiles.append(profile)

        if legacy_map:
            self._finish_migration_pass(legacy_map, profiles, migrated_count)

        return sort_profiles(profiles)

    def _pending_legacy_records(self) -> Dict[str, Profile]:
        if self._migration_done:
            return {}

        legacy_profiles = self.legacy.load_profiles()
        if not legacy_profiles:
            self._migration_done = True
            return {}
        return {profile.id: profile for profile in legacy_profiles}

    def _finish_migration_pass(
        self, legacy_map: Dict[str, Profile], profiles: List[Profile], migrated_count: int
    ) -> None:
        present_ids = {profile.id for profile in profiles}
        if all(profile_id in present_ids for profile_id in legacy_map):
            self.legacy.clear_profiles()
            self._migration_done = True
            logger.info("All profiles migrated to metadata.json, cleared legacy registry entry")
        elif migrated_count == 0:
            # remaining records have no directory to migrate into
            self._migration_done = True

    def get_by_id(self, profile_id: str) -> Optional[Profile]:
        return self.read_metadata(self.platform.join(self.profiles_dir, profile_id))

    def require(self, profile_id: str) -> Profile:
        profile = self.get_by_id(profile_id)
        if profile is None:
            raise NotFoundError("profile", profile_id)
        return profile

    @contextmanager
    def edit(self, profile_id: str) -> Iterator[Profile]:
        """re-read the latest metadata, yield it, and write it back on success."""
        profile = self.require(profile_id)
        yield profile
        self.write_metadata(profile)

    def create_dir(self, profile_id: str) -> Path:
        return self.platform.ensure_dir(self.platform.join(self.profiles_dir, profile_id))

    def delete_dir(self, path: Union[str, Path]) -> None:
        self.platform.remove_path(path)

    def plugins_dir(self, profile_path: Union[str, Path]) -> Path:
        return self.platform.join(profile_path, *PLUGINS_SUBDIR)

    def get_mod_files(self, profile_path: Union[str, Path]) -> List[str]:
        """plugin filenames currently on disk; a missing directory means none."""
        try:
            entries = self.platform.list_dir(self.plugins_dir(profile_path))
        except OSError:
            return []
        return [
            entry.name
            for entry in entries
            if not entry.is_dir and entry.name.lower().endswith(PLUGIN_EXTENSION)
        ]

    def delete_mod_file(self, profile_path: Union[str, Path], file_name: str) -> None:
        self.platform.remove_path(self.platform.join(self.plugins_dir(profile_path), file_name))


def sort_profiles(profiles: List[Profile]) -> List[Profile]:
    """``last_launched_at`` descending (never launched last), then ``created_at`` descending."""
    return sorted(
        profiles,
        key=lambda p: (p.last_launched_at or 0, p.created_at),
        reverse=True,
    )
