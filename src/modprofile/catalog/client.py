from abc import ABC, abstractmethod
from typing import List

from ..domain.models import CatalogMod, ModVersion, ModVersionInfo


class CatalogClient(ABC):
    @abstractmethod
    async def get_mod(self, mod_id: str) -> CatalogMod:
        """Get the catalog record for a mod."""
        pass

    @abstractmethod
    async def get_versions(self, mod_id: str) -> List[ModVersion]:
        """Get published versions of a mod."""
        pass

    @abstractmethod
    async def get_version_info(self, mod_id: str, version: str) -> ModVersionInfo:
        """Get download details and dependencies for a specific version."""
        pass

    async def close(self) -> None:
        pass
