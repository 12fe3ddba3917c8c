import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set

from ..catalog.client import CatalogClient
from ..domain.models import (
    DiskFilesInvalidated,
    DownloadProgress,
    InstalledMod,
    InstallRequest,
    ProfileModEntry,
    ProfilesInvalidated,
)
from ..events import DISK_FILES_INVALIDATED, MOD_DOWNLOAD_PROGRESS, PROFILES_INVALIDATED, EventHub
from ..installer.downloader import ModDownloader
from ..profiles.manager import drop_mod_entry, put_mod_entry
from ..profiles.repository import ProfileRepository
from ..resolution.resolver import DependencyResolver, build_install_list, default_selection
from ..state.downloads import DownloadTracker

logger = logging.getLogger(__name__)


@dataclass
class _Download:
    request: InstallRequest
    file_name: str
    destination: Path
    backup: Optional[Path] = None


class ModInstallService:
    """installs a batch of mods into a profile as a single transaction."""

    def __init__(
        self,
        repository: ProfileRepository,
        catalog: CatalogClient,
        downloader: ModDownloader,
        resolver: DependencyResolver,
        hub: EventHub,
        downloads: Optional[DownloadTracker] = None,
    ):
        self.repository = repository
        self.catalog = catalog
        self.downloader = downloader
        self.resolver = resolver
        self.hub = hub
        self.downloads = downloads

    async def install(
        self,
        profile_id: str,
        mods: List[InstallRequest],
        on_progress: Optional[Callable[[Any], Any]] = None,
    ) -> List[InstalledMod]:
        """
        download every mod, then record them in the profile.

        the first failure aborts the batch; files written by this call are
        removed, overwritten files restored, and metadata entries reverted
        before the original error is re-raised.

        args:
            profile_id: target profile
            mods: mods (and already-chosen dependencies) to install, in order
            on_progress: optional callback for ``mod-download-progress`` events

        raises:
            NotFoundError: if the profile does not exist
            NetworkError: if a catalog lookup or download fails
        """
        # 1. load target profile
        profile = self.repository.require(profile_id)

        # 2. snapshot previous entries for rollback
        previous: Dict[str, Optional[ProfileModEntry]] = {}
        for mod in mods:
            entry = profile.find_mod(mod.mod_id)
            previous[mod.mod_id] = entry.model_copy() if entry else None

        plugins_dir = self.repository.plugins_dir(profile.path)
        created_dirs = _missing_dirs(plugins_dir)
        plugins_dir.mkdir(parents=True, exist_ok=True)

        downloads: List[_Download] = []
        persisted: List[str] = []
        current: Optional[str] = None

        subscription = None
        if on_progress is not None:
            subscription = self.hub.subscribe(MOD_DOWNLOAD_PROGRESS, on_progress, model=DownloadProgress)

        with tempfile.TemporaryDirectory(prefix="modprofile-backup-") as backup_dir:
            try:
                # 3. download sequentially; first failure aborts the batch
                for mod in mods:
                    current = mod.mod_id
                    if self.downloads is not None:
                        self.downloads.clear(mod.mod_id)
                    info = await self.catalog.get_version_info(mod.mod_id, mod.version)
                    destination = plugins_dir / info.file_name

                    download = _Download(request=mod, file_name=info.file_name, destination=destination)
                    if destination.exists():
                        download.backup = Path(backup_dir) / f"{len(downloads)}-{info.file_name}"
                        shutil.move(str(destination), str(download.backup))
                    downloads.append(download)

                    await self.downloader.download(mod.mod_id, info.download_url, destination, info.checksum)
                    logger.info(f"downloaded {mod.mod_id}@{mod.version} for {profile_id}")
                current = None

                # 4. persist only after every download succeeded
                for download in downloads:
                    current = download.request.mod_id
                    with self.repository.edit(profile_id) as latest:
                        put_mod_entry(
                            latest,
                            ProfileModEntry(
                                mod_id=download.request.mod_id,
                                version=download.request.version,
                                file=download.file_name,
                            ),
                        )
                    persisted.append(download.request.mod_id)
            except Exception as e:
                logger.error(f"install into {profile_id} failed, rolling back: {e}")
                self._rollback(profile_id, persisted, previous, downloads, created_dirs)
                self._mark_failed(current, downloads, str(e))
                raise
            finally:
                if subscription is not None:
                    subscription.unsubscribe()

        await self.hub.publish(PROFILES_INVALIDATED, ProfilesInvalidated(profile_id=profile_id))
        await self.hub.publish(DISK_FILES_INVALIDATED, DiskFilesInvalidated(profile_path=profile.path))

        return [
            InstalledMod(mod_id=d.request.mod_id, version=d.request.version, file_name=d.file_name)
            for d in downloads
        ]

    def _rollback(
        self,
        profile_id: str,
        persisted: List[str],
        previous: Dict[str, Optional[ProfileModEntry]],
        downloads: List[_Download],
        created_dirs: List[Path],
    ) -> None:
        """best effort; failures are logged so the triggering error survives."""
        for mod_id in reversed(persisted):
            try:
                with self.repository.edit(profile_id) as latest:
                    if previous[mod_id] is not None:
                        put_mod_entry(latest, previous[mod_id])
                    else:
                        latest.mods = [mod for mod in latest.mods if mod.mod_id != mod_id]
            except Exception as e:
                logger.error(f"rollback of metadata for {mod_id} failed: {e}")

        for download in reversed(downloads):
            try:
                self.repository.platform.remove_path(download.destination)
                if download.backup is not None:
                    shutil.move(str(download.backup), str(download.destination))
            except OSError as e:
                logger.error(f"rollback of {download.file_name} failed: {e}")

        # deepest first; rmdir refuses directories something else wrote into
        for directory in created_dirs:
            try:
                directory.rmdir()
            except OSError as e:
                logger.debug(f"left {directory} in place: {e}")
                break

    def _mark_failed(self, failed: Optional[str], downloads: List[_Download], message: str) -> None:
        """the failing mod shows the error; mods rolled back with it lose their state."""
        if self.downloads is None:
            return
        for download in downloads:
            if download.request.mod_id != failed:
                self.downloads.clear(download.request.mod_id)
        if failed is not None:
            self.downloads.set_error(failed, message)

    async def install_with_dependencies(
        self,
        profile_id: str,
        mod_id: str,
        version: str,
        selected: Optional[Set[str]] = None,
        on_progress: Optional[Callable[[Any], Any]] = None,
    ) -> List[InstalledMod]:
        """
        install a mod plus its selected dependencies.

        dependencies already in the profile are skipped; conflicts are never
        installed. ``selected`` defaults to every installable dependency.
        """
        profile = self.repository.require(profile_id)
        info = await self.catalog.get_version_info(mod_id, version)
        resolved = await self.resolver.resolve(info.dependencies)

        if selected is None:
            selected = default_selection(resolved)
        requests = build_install_list(
            mod_id,
            version,
            resolved,
            selected,
            installed_in_profile={mod.mod_id for mod in profile.mods},
        )
        return await self.install(profile_id, requests, on_progress=on_progress)

    async def uninstall(self, profile_id: str, mod_id: str) -> None:
        """
        remove the metadata entry only; deleting the file is the caller's job.
        removing a mod that is not recorded is a no-op.
        """
        with self.repository.edit(profile_id) as profile:
            drop_mod_entry(profile, mod_id)
        await self.hub.publish(PROFILES_INVALIDATED, ProfilesInvalidated(profile_id=profile_id))


def _missing_dirs(path: Path) -> List[Path]:
    """``path`` and its ancestors that do not exist yet, deepest first."""
    missing = []
    while not path.exists() and path != path.parent:
        missing.append(path)
        path = path.parent
    return missing
