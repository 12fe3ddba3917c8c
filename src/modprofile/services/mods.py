import logging
from typing import List, Set

from ..domain.models import (
    CustomMod,
    DiskFilesInvalidated,
    ManagedMod,
    Profile,
    ProfilesInvalidated,
    UnifiedMod,
)
from ..events import DISK_FILES_INVALIDATED, PROFILES_INVALIDATED, EventHub
from ..profiles.manager import drop_mod_entry, normalize_icon_selection
from ..profiles.repository import ProfileRepository

logger = logging.getLogger(__name__)


class UnifiedModView:
    """
    reconciles a profile's declared mods with the plugin files on disk.

    entries whose file vanished are pruned from metadata whenever the view is
    computed; entries that never had a file are left alone.
    """

    def __init__(self, repository: ProfileRepository, hub: EventHub):
        self.repository = repository
        self.hub = hub

    def get_mod_files(self, profile_path: str) -> List[str]:
        return self.repository.get_mod_files(profile_path)

    def count_mods(self, profile_path: str) -> int:
        return len(self.get_mod_files(profile_path))

    async def get_unified_mods(self, profile_id: str) -> List[UnifiedMod]:
        """managed mods in metadata order, then custom files in directory order."""
        profile = self.repository.require(profile_id)
        disk_files = self.get_mod_files(profile.path)
        on_disk = set(disk_files)

        unified: List[UnifiedMod] = []
        claimed: Set[str] = set()
        for mod in profile.mods:
            if mod.file and mod.file in on_disk and mod.file not in claimed:
                claimed.add(mod.file)
                unified.append(ManagedMod(mod_id=mod.mod_id, version=mod.version, file=mod.file))

        for file in disk_files:
            if file not in claimed:
                unified.append(CustomMod(file=file))

        await self._prune_missing(profile, on_disk)
        return unified

    async def cleanup_missing_mods(self, profile_id: str) -> None:
        """drop metadata entries whose file is gone; a second call is a no-op."""
        profile = self.repository.require(profile_id)
        await self._prune_missing(profile, set(self.get_mod_files(profile.path)))

    async def _prune_missing(self, profile: Profile, on_disk: Set[str]) -> None:
        missing = [mod for mod in profile.mods if mod.file and mod.file not in on_disk]
        if not missing:
            return

        missing_ids = {mod.mod_id for mod in missing}
        with self.repository.edit(profile.id) as latest:
            latest.mods = [
                mod for mod in latest.mods
                if not (mod.mod_id in missing_ids and mod.file and mod.file not in on_disk)
            ]
            normalize_icon_selection(latest)

        logger.info(f"pruned {len(missing)} missing mod(s) from {profile.id}: {sorted(missing_ids)}")
        await self.hub.publish(PROFILES_INVALIDATED, ProfilesInvalidated(profile_id=profile.id))

    async def delete_unified_mod(self, profile_id: str, mod: UnifiedMod) -> None:
        """delete the plugin file; managed mods also lose their metadata entry."""
        profile = self.repository.require(profile_id)
        self.repository.delete_mod_file(profile.path, mod.file)

        if isinstance(mod, ManagedMod):
            with self.repository.edit(profile_id) as latest:
                drop_mod_entry(latest, mod.mod_id)
            await self.hub.publish(PROFILES_INVALIDATED, ProfilesInvalidated(profile_id=profile_id))
        await self.hub.publish(DISK_FILES_INVALIDATED, DiskFilesInvalidated(profile_path=profile.path))
