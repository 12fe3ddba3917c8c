import logging
from pathlib import Path
from typing import Optional

import httpx

from .catalog.client import CatalogClient
from .catalog.http import HttpCatalog
from .config import get_catalog_url, get_data_dir, get_legacy_registry_path
from .events import EventHub, EventSource
from .installer.downloader import HttpModDownloader, ModDownloader
from .installer.runtime import HttpRuntimeInstaller, RuntimeInstaller
from .profiles.legacy import LegacyRegistry
from .profiles.manager import ProfileManager
from .profiles.repository import ProfileRepository
from .resolution.resolver import DependencyResolver
from .runtime.tracker import RuntimeTracker
from .services.install import ModInstallService
from .services.mods import UnifiedModView
from .state.downloads import DownloadTracker

logger = logging.getLogger(__name__)


class AppContext:
    """
    wires every service together once.

    collaborators can be injected for tests; anything not given is built
    from the user's configuration.

    usage:
        async with AppContext() as ctx:
            profiles = ctx.manager.list_profiles()
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        catalog: Optional[CatalogClient] = None,
        downloader: Optional[ModDownloader] = None,
        runtime_installer: Optional[RuntimeInstaller] = None,
        source: Optional[EventSource] = None,
        legacy_registry: Optional[Path] = None,
    ):
        self.data_dir = Path(data_dir) if data_dir else get_data_dir()
        if legacy_registry is None:
            legacy_registry = self.data_dir / get_legacy_registry_path().name

        self.hub = EventHub(source)
        self.repository = ProfileRepository(self.data_dir, legacy=LegacyRegistry(legacy_registry))

        self._http: Optional[httpx.AsyncClient] = None
        if catalog is None or downloader is None or runtime_installer is None:
            self._http = httpx.AsyncClient(timeout=300.0, follow_redirects=True)

        self.catalog = catalog or HttpCatalog(get_catalog_url(), client=self._http)
        self.downloader = downloader or HttpModDownloader(self.hub, client=self._http)
        self.runtime_installer = runtime_installer or HttpRuntimeInstaller(self.hub, client=self._http)

        self.manager = ProfileManager(self.repository, self.hub, runtime_installer=self.runtime_installer)
        self.resolver = DependencyResolver(self.catalog)
        self.downloads = DownloadTracker(self.hub)
        self.installer = ModInstallService(
            self.repository, self.catalog, self.downloader, self.resolver, self.hub, downloads=self.downloads
        )
        self.mods = UnifiedModView(self.repository, self.hub)
        self.tracker = RuntimeTracker(self.manager, self.hub)
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        self.tracker.start()
        self.downloads.start()
        self._started = True
        logger.debug(f"context started for {self.data_dir}")

    async def close(self) -> None:
        self.tracker.close()
        self.downloads.close()
        self.hub.close()
        if self._http is not None:
            await self._http.aclose()
            self._http = None
        self._started = False

    async def __aenter__(self) -> "AppContext":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
