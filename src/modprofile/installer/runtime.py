import logging
import shutil
import tempfile
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import httpx

from ..domain.errors import NetworkError, ValidationError
from ..domain.models import InstallProgress
from ..events import BEPINEX_PROGRESS, EventHub

logger = logging.getLogger(__name__)


class RuntimeInstaller(ABC):
    @abstractmethod
    async def install(self, url: str, destination: Path, cache_path: Optional[Path] = None) -> None:
        """install the mod loader runtime archive from ``url`` into ``destination``."""
        pass


class HttpRuntimeInstaller(RuntimeInstaller):
    """downloads (or reuses a cached) runtime zip and extracts it, publishing ``bepinex-progress``."""

    def __init__(self, hub: EventHub, client: Optional[httpx.AsyncClient] = None, timeout: float = 300.0):
        self.hub = hub
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def _emit(self, stage: str, progress: float, message: str):
        await self.hub.publish(BEPINEX_PROGRESS, InstallProgress(stage=stage, progress=progress, message=message))

    async def install(self, url: str, destination: Path, cache_path: Optional[Path] = None) -> None:
        destination = Path(destination)
        with tempfile.TemporaryDirectory() as tmp:
            archive = Path(tmp) / "runtime.zip"

            if cache_path is not None and Path(cache_path).is_file():
                logger.info(f"using cached runtime archive {cache_path}")
                await self._emit("downloading", 100.0, "Using cached download")
                shutil.copyfile(cache_path, archive)
            else:
                await self._download(url, archive)
                if cache_path is not None:
                    Path(cache_path).parent.mkdir(parents=True, exist_ok=True)
                    shutil.copyfile(archive, cache_path)

            await self._emit("extracting", 0.0, "Extracting files...")
            await self._extract(archive, destination)

        await self._emit("complete", 100.0, "Installation complete!")

    async def _download(self, url: str, target: Path) -> None:
        await self._emit("downloading", 0.0, "Starting download...")
        try:
            async with self.client.stream("GET", url) as response:
                response.raise_for_status()
                total = int(response.headers.get("content-length", 0)) or None
                downloaded = 0
                with open(target, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
                        downloaded += len(chunk)
                        if total:
                            await self._emit(
                                "downloading",
                                downloaded * 100.0 / total,
                                f"Downloading... {downloaded // 1024} / {total // 1024} KB",
                            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Runtime download failed: {e}") from e

    async def _extract(self, archive: Path, destination: Path) -> None:
        destination.mkdir(parents=True, exist_ok=True)
        root = destination.resolve()
        try:
            with zipfile.ZipFile(archive, "r") as zf:
                members = zf.infolist()
                for index, member in enumerate(members, start=1):
                    target = (destination / member.filename).resolve()
                    if root != target and root not in target.parents:
                        raise ValidationError(f"Archive entry escapes destination: {member.filename}")
                    zf.extract(member, destination)
                    await self._emit("extracting", index * 100.0 / len(members), f"Extracting {member.filename}")
        except zipfile.BadZipFile as e:
            raise ValidationError(f"Runtime archive is not a valid zip: {e}") from e

    async def close(self) -> None:
        await self.client.aclose()
