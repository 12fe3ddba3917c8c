import logging
import re
import zipfile
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..domain.errors import NotFoundError, ValidationError
from ..domain.models import (
    MAX_PROFILE_NAME_LENGTH,
    IconSelection,
    InstallProgress,
    Profile,
    ProfileModEntry,
    ProfilesInvalidated,
)
from ..events import BEPINEX_PROGRESS, PROFILES_INVALIDATED, EventHub
from ..installer.runtime import RuntimeInstaller
from ..utils.clock import now_ms
from .repository import ProfileRepository
from .store import METADATA_FILENAME

logger = logging.getLogger(__name__)

MAX_CUSTOM_ICON_DATA_URL_LENGTH = 750_000
_IMAGE_DATA_URL = re.compile(r"^data:image/[a-z0-9.+-]+;base64,[a-z0-9+/=]+$", re.IGNORECASE)


class ProfileManager:
    """profile lifecycle and metadata mutations; publishes ``profiles-invalidated``."""

    def __init__(
        self,
        repository: ProfileRepository,
        hub: EventHub,
        runtime_installer: Optional[RuntimeInstaller] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.repository = repository
        self.hub = hub
        self.runtime_installer = runtime_installer
        self.clock = clock

    async def _invalidate(self, profile_id: Optional[str] = None):
        await self.hub.publish(PROFILES_INVALIDATED, ProfilesInvalidated(profile_id=profile_id))

    def list_profiles(self) -> List[Profile]:
        return self.repository.list_profiles()

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        return self.repository.get_by_id(profile_id)

    async def create_profile(self, name: str) -> Profile:
        """
        create a new, empty profile.

        raises:
            ValidationError: if the name is empty, too long or already used
        """
        trimmed = self._validate_name(name)
        self._ensure_unique_name(trimmed, self.list_profiles())

        timestamp = self.clock()
        profile_id = build_profile_id(trimmed, timestamp)
        profile_path = self.repository.create_dir(profile_id)

        profile = Profile(
            id=profile_id,
            name=trimmed,
            path=str(profile_path),
            created_at=timestamp,
            bepinex_installed=False,
            total_play_time=0,
            icon_mode="default",
            mods=[],
        )
        self.repository.write_metadata(profile)
        logger.info(f"created profile {profile_id}")
        await self._invalidate(profile_id)
        return profile

    async def rename_profile(self, profile_id: str, new_name: str) -> None:
        trimmed = self._validate_name(new_name)
        profiles = self.list_profiles()
        if not any(profile.id == profile_id for profile in profiles):
            raise NotFoundError("profile", profile_id)
        self._ensure_unique_name(trimmed, [p for p in profiles if p.id != profile_id])

        with self.repository.edit(profile_id) as profile:
            profile.name = trimmed
        await self._invalidate(profile_id)

    async def delete_profile(self, profile_id: str) -> None:
        """remove the profile directory; irreversible."""
        profile = self.repository.require(profile_id)
        self.repository.delete_dir(profile.path)
        logger.info(f"deleted profile {profile_id}")
        await self._invalidate(profile_id)

    async def update_profile_icon(self, profile_id: str, selection: IconSelection) -> None:
        with self.repository.edit(profile_id) as profile:
            if selection.mode == "default":
                profile.icon_mode = "default"
                profile.custom_icon_data_url = None
                profile.icon_mod_id = None

            elif selection.mode == "custom":
                data_url = (selection.data_url or "").strip()
                if not data_url:
                    raise ValidationError("Custom icon image is required")
                if len(data_url) > MAX_CUSTOM_ICON_DATA_URL_LENGTH:
                    raise ValidationError("Custom icon image is too large")
                if not is_image_data_url(data_url):
                    raise ValidationError("Custom icon must be a valid image")
                profile.icon_mode = "custom"
                profile.custom_icon_data_url = data_url
                profile.icon_mod_id = None

            else:
                mod_id = (selection.mod_id or "").strip()
                if not mod_id:
                    raise ValidationError("Mod icon selection is required")
                if profile.find_mod(mod_id) is None:
                    raise ValidationError("Selected mod is not installed in this profile")
                profile.icon_mode = "mod"
                profile.icon_mod_id = mod_id
                profile.custom_icon_data_url = None
        await self._invalidate(profile_id)

    def get_active_profile(self) -> Optional[Profile]:
        """the most recently launched profile, or None if none was ever launched."""
        launched = [p for p in self.list_profiles() if p.last_launched_at is not None]
        if not launched:
            return None
        return max(launched, key=lambda p: p.last_launched_at)

    async def update_last_launched(self, profile_id: str) -> None:
        if self.repository.get_by_id(profile_id) is None:
            return
        with self.repository.edit(profile_id) as profile:
            profile.last_launched_at = self.clock()
        await self._invalidate(profile_id)

    async def add_mod_to_profile(self, profile_id: str, mod_id: str, version: str, file: str) -> None:
        with self.repository.edit(profile_id) as profile:
            put_mod_entry(profile, ProfileModEntry(mod_id=mod_id, version=version, file=file))
        await self._invalidate(profile_id)

    async def remove_mod_from_profile(self, profile_id: str, mod_id: str) -> None:
        """drop the metadata entry for ``mod_id``; a missing entry is a no-op."""
        with self.repository.edit(profile_id) as profile:
            drop_mod_entry(profile, mod_id)
        await self._invalidate(profile_id)

    async def add_play_time(self, profile_id: str, duration_ms: int) -> None:
        with self.repository.edit(profile_id) as profile:
            profile.total_play_time = (profile.total_play_time or 0) + duration_ms
        logger.info(f"added {duration_ms}ms play time to {profile_id}")
        await self._invalidate(profile_id)

    async def install_runtime(
        self,
        profile_id: str,
        url: str,
        cache_path: Optional[Path] = None,
        on_progress: Optional[Callable[[Any], Any]] = None,
    ) -> None:
        """
        install the mod loader into a profile and mark it installed.

        raises:
            NotFoundError: if the profile does not exist
            RuntimeError: if no runtime installer is configured
        """
        if self.runtime_installer is None:
            raise RuntimeError("no runtime installer configured")
        profile = self.repository.require(profile_id)

        subscription = None
        if on_progress is not None:
            subscription = self.hub.subscribe(BEPINEX_PROGRESS, on_progress, model=InstallProgress)
        try:
            await self.runtime_installer.install(url, Path(profile.path), cache_path)
        except Exception as e:
            logger.error(f"runtime install failed for {profile_id}: {e}")
            raise
        finally:
            if subscription is not None:
                subscription.unsubscribe()

        # the profile may have been deleted while installing
        if self.repository.get_by_id(profile_id) is not None:
            with self.repository.edit(profile_id) as latest:
                latest.bepinex_installed = True
            await self._invalidate(profile_id)

    def export_profile_zip(self, profile_id: str, destination: Path) -> Path:
        """zip the whole profile directory to ``destination``."""
        profile = self.repository.require(profile_id)
        root = Path(profile.path)
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)

        with zipfile.ZipFile(destination, "w", zipfile.ZIP_DEFLATED) as zf:
            for path in sorted(root.rglob("*")):
                if path.is_file():
                    zf.write(path, path.relative_to(root).as_posix())
        return destination

    async def import_profile_zip(self, zip_path: Path) -> Profile:
        """
        create a new profile from an exported zip.

        the new directory is removed again if anything fails.
        """
        zip_path = Path(zip_path)
        profiles = self.list_profiles()
        zip_name = derive_name_from_zip_path(zip_path)
        timestamp = self.clock()
        profile_id = build_profile_id(zip_name, timestamp)
        profile_path = self.repository.create_dir(profile_id)

        try:
            _extract_zip(zip_path, profile_path)
            imported = self._read_imported_metadata(profile_path)

            profile = Profile(
                id=profile_id,
                name=make_unique_profile_name(imported.get("name") or zip_name, profiles),
                path=str(profile_path),
                created_at=timestamp,
                last_launched_at=imported.get("last_launched_at"),
                bepinex_installed=True,
                total_play_time=0,
                icon_mode=imported.get("icon_mode", "default"),
                custom_icon_data_url=imported.get("custom_icon_data_url"),
                icon_mod_id=imported.get("icon_mod_id"),
                mods=imported.get("mods", []),
            )
            normalize_icon_selection(profile)
            self.repository.write_metadata(profile)
        except Exception:
            self.repository.delete_dir(profile_path)
            raise

        logger.info(f"imported profile {profile_id} from {zip_path}")
        await self._invalidate(profile_id)
        return profile

    def _read_imported_metadata(self, profile_path: Path) -> Dict[str, Any]:
        """keep only well-typed fields from an imported ``metadata.json``."""
        try:
            raw = self.repository.platform.read_json(Path(profile_path) / METADATA_FILENAME)
        except (OSError, ValueError):
            return {"mods": []}
        if not isinstance(raw, dict):
            return {"mods": []}

        imported: Dict[str, Any] = {"mods": parse_imported_mods(raw.get("mods"))}
        name = raw.get("name")
        if isinstance(name, str) and name.strip():
            imported["name"] = name.strip()[:MAX_PROFILE_NAME_LENGTH]
        last_launched = raw.get("last_launched_at")
        if isinstance(last_launched, (int, float)) and not isinstance(last_launched, bool):
            imported["last_launched_at"] = int(last_launched)
        if raw.get("icon_mode") in ("default", "custom", "mod"):
            imported["icon_mode"] = raw["icon_mode"]
        data_url = raw.get("custom_icon_data_url")
        if (
            isinstance(data_url, str)
            and len(data_url) <= MAX_CUSTOM_ICON_DATA_URL_LENGTH
            and is_image_data_url(data_url)
        ):
            imported["custom_icon_data_url"] = data_url
        icon_mod_id = raw.get("icon_mod_id")
        if isinstance(icon_mod_id, str) and icon_mod_id.strip():
            imported["icon_mod_id"] = icon_mod_id.strip()
        return imported

    @staticmethod
    def _validate_name(name: str) -> str:
        trimmed = (name or "").strip()
        if not trimmed:
            raise ValidationError("Profile name cannot be empty")
        if len(trimmed) > MAX_PROFILE_NAME_LENGTH:
            raise ValidationError(f"Profile name cannot exceed {MAX_PROFILE_NAME_LENGTH} characters")
        return trimmed

    @staticmethod
    def _ensure_unique_name(name: str, profiles: List[Profile]) -> None:
        if any(profile.name.lower() == name.lower() for profile in profiles):
            raise ValidationError(f"Profile '{name}' already exists")


def put_mod_entry(profile: Profile, entry: ProfileModEntry) -> None:
    """replace the entry for the same mod in place, or append it."""
    for index, existing in enumerate(profile.mods):
        if existing.mod_id == entry.mod_id:
            profile.mods[index] = entry
            return
    profile.mods.append(entry)


def drop_mod_entry(profile: Profile, mod_id: str) -> None:
    profile.mods = [mod for mod in profile.mods if mod.mod_id != mod_id]
    normalize_icon_selection(profile)


def normalize_icon_selection(profile: Profile) -> None:
    """a ``mod`` icon must point at an installed mod; stale icon fields are cleared."""
    if profile.icon_mode == "mod":
        if not profile.icon_mod_id or profile.find_mod(profile.icon_mod_id) is None:
            profile.icon_mode = "default"
    if profile.icon_mode != "mod":
        profile.icon_mod_id = None
    if profile.icon_mode != "custom":
        profile.custom_icon_data_url = None


def is_image_data_url(value: str) -> bool:
    return bool(_IMAGE_DATA_URL.match(value))


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]", "-", text.lower())
    return re.sub(r"-+", "-", slug).strip("-")


def build_profile_id(name: str, timestamp: int) -> str:
    slug = slugify(name)
    return f"{slug}-{timestamp}" if slug else f"profile-{timestamp}"


def derive_name_from_zip_path(zip_path: Path) -> str:
    name = re.sub(r"\.zip$", "", Path(zip_path).name.strip(), flags=re.IGNORECASE).strip()
    return name or f"Imported Profile {date.today().isoformat()}"


def make_unique_profile_name(requested: str, profiles: List[Profile]) -> str:
    base = requested.strip() or "Imported Profile"
    names = {profile.name.lower() for profile in profiles}
    if base.lower() not in names:
        return base

    suffix = 2
    candidate = f"{base} ({suffix})"
    while candidate.lower() in names:
        suffix += 1
        candidate = f"{base} ({suffix})"
    return candidate


def parse_imported_mods(raw_mods: Any) -> List[ProfileModEntry]:
    if not isinstance(raw_mods, list):
        return []

    mods = []
    for entry in raw_mods:
        if not isinstance(entry, dict):
            continue
        mod_id, version = entry.get("mod_id"), entry.get("version")
        if not isinstance(mod_id, str) or not isinstance(version, str):
            continue
        file = entry.get("file") if isinstance(entry.get("file"), str) else None
        mods.append(ProfileModEntry(mod_id=mod_id, version=version, file=file))
    return mods


def _extract_zip(zip_path: Path, destination: Path) -> None:
    root = Path(destination).resolve()
    try:
        with zipfile.ZipFile(zip_path, "r") as zf:
            for member in zf.infolist():
                target = (root / member.filename).resolve()
                if root != target and root not in target.parents:
                    raise ValidationError(f"Archive entry escapes profile directory: {member.filename}")
            zf.extractall(root)
    except zipfile.BadZipFile as e:
        raise ValidationError(f"Not a valid profile archive: {e}") from e
