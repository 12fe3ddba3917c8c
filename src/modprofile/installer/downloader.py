import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import httpx

from ..domain.errors import ChecksumMismatchError, NetworkError
from ..domain.models import DownloadProgress
from ..events import MOD_DOWNLOAD_PROGRESS, EventHub
from ..utils.checksum import checksums_match, sha256_file

logger = logging.getLogger(__name__)


class ModDownloader(ABC):
    @abstractmethod
    async def download(self, mod_id: str, url: str, destination: Path, expected_checksum: str) -> None:
        """
        download a mod artifact to ``destination`` and verify its checksum.

        raises:
            NetworkError: if the download fails
            ChecksumMismatchError: if the artifact does not match
        """
        pass


class HttpModDownloader(ModDownloader):
    """
    streams an artifact over HTTP, publishing ``mod-download-progress`` events.

    the file is only moved to ``destination`` after the checksum matches, so a
    failed download never leaves a file behind.
    """

    def __init__(self, hub: EventHub, client: Optional[httpx.AsyncClient] = None, timeout: float = 300.0):
        self.hub = hub
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def _emit(self, mod_id: str, stage: str, downloaded: int = 0, total: Optional[int] = None):
        if total:
            progress = min(100.0, downloaded * 100.0 / total)
        else:
            progress = 100.0 if stage == "complete" else 0.0
        await self.hub.publish(
            MOD_DOWNLOAD_PROGRESS,
            DownloadProgress(mod_id=mod_id, downloaded=downloaded, total=total, progress=progress, stage=stage),
        )

    async def download(self, mod_id: str, url: str, destination: Path, expected_checksum: str) -> None:
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = destination.with_name(destination.name + ".part")

        await self._emit(mod_id, "connecting")
        downloaded = 0
        total = None
        try:
            async with self.client.stream("GET", url) as response:
                response.raise_for_status()

                if "content-length" in response.headers:
                    total = int(response.headers["content-length"])
                await self._emit(mod_id, "downloading", 0, total)

                with open(partial, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
                        downloaded += len(chunk)
                        await self._emit(mod_id, "downloading", downloaded, total)

            await self._emit(mod_id, "verifying", downloaded, total)
            actual = sha256_file(partial)
            if not checksums_match(expected_checksum, actual):
                raise ChecksumMismatchError(mod_id, expected_checksum, actual)

            await self._emit(mod_id, "writing", downloaded, total)
            partial.replace(destination)
        except httpx.HTTPError as e:
            raise NetworkError(f"Download of '{mod_id}' failed: {e}") from e
        finally:
            if partial.exists():
                partial.unlink()

        await self._emit(mod_id, "complete", downloaded, total)
        logger.info(f"downloaded {mod_id} to {destination}")

    async def close(self) -> None:
        await self.client.aclose()
