"""profile storage, migration and lifecycle."""
from .legacy import LegacyRegistry
from .manager import ProfileManager
from .platform import ProfilePlatformAdapter
from .repository import ProfileRepository, sort_profiles
from .store import MetadataStore

__all__ = [
    "LegacyRegistry",
    "MetadataStore",
    "ProfileManager",
    "ProfilePlatformAdapter",
    "ProfileRepository",
    "sort_profiles",
]
