import logging
from typing import Any, List, Optional, Type, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from ..domain.errors import NetworkError, NotFoundError, ValidationError
from ..domain.models import CatalogMod, ModVersion, ModVersionInfo
from .client import CatalogClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HttpCatalog(CatalogClient):
    """catalog client for the ``/api/v2`` HTTP API; every payload is validated."""

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def get_mod(self, mod_id: str) -> CatalogMod:
        return await self._fetch(f"/api/v2/mods/{mod_id}", CatalogMod, mod_id)

    async def get_versions(self, mod_id: str) -> List[ModVersion]:
        return await self._fetch(f"/api/v2/mods/{mod_id}/versions", List[ModVersion], mod_id)

    async def get_version_info(self, mod_id: str, version: str) -> ModVersionInfo:
        info = await self._fetch(
            f"/api/v2/mods/{mod_id}/versions/{version}/info", ModVersionInfo, f"{mod_id}@{version}"
        )
        if not info.version:
            info.version = version
        return info

    async def _fetch(self, path: str, schema: Type[T], identifier: str) -> T:
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError("mod", identifier)
        if response.is_error:
            raise NetworkError(f"HTTP error: {response.status_code} {response.reason_phrase}")

        try:
            data: Any = response.json()
            return TypeAdapter(schema).validate_python(data)
        except (ValueError, PydanticValidationError) as e:
            logger.debug(f"invalid catalog payload from {url}: {e}")
            raise ValidationError(f"Invalid catalog response for '{identifier}'") from e

    async def close(self) -> None:
        await self.client.aclose()
