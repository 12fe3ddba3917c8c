import asyncio
import logging
from typing import Iterable, List, Optional, Set

from ..catalog.client import CatalogClient
from ..domain.errors import ModProfileError
from ..domain.models import InstallRequest, ModDependency, ModVersion, ResolvedDependency
from .constraints import VersionConstraint

logger = logging.getLogger(__name__)


class DependencyResolver:
    """picks one catalog version per declared dependency (best effort)."""

    def __init__(self, catalog: CatalogClient):
        self.catalog = catalog

    async def resolve(self, dependencies: List[ModDependency]) -> List[ResolvedDependency]:
        """
        resolve dependencies with their mod names and newest matching versions.

        a dependency whose catalog lookup fails is dropped from the result.
        """
        results = await asyncio.gather(*(self._resolve_one(dep) for dep in dependencies))
        return [resolved for resolved in results if resolved is not None]

    async def _resolve_one(self, dependency: ModDependency) -> Optional[ResolvedDependency]:
        try:
            mod, versions = await asyncio.gather(
                self.catalog.get_mod(dependency.mod_id),
                self.catalog.get_versions(dependency.mod_id),
            )
        except (ModProfileError, OSError, ValueError) as e:
            logger.warning(f"Failed to resolve dependency {dependency.mod_id}: {e}")
            return None

        return ResolvedDependency(
            **dependency.model_dump(),
            mod_name=mod.name,
            resolved_version=select_version(versions, dependency.version_constraint),
        )


def select_version(versions: List[ModVersion], constraint: Optional[str]) -> str:
    """
    newest version satisfying ``constraint``, else the newest version.

    versions are ordered by ``created_at``, not by version number.
    """
    ordered = sorted(versions, key=lambda v: v.created_at, reverse=True)
    if not ordered:
        return ""
    newest = ordered[0].version

    try:
        parsed = VersionConstraint.parse(constraint)
    except ValueError as e:
        logger.debug(f"ignoring constraint {constraint!r}: {e}")
        return newest
    if parsed is None:
        return newest

    for candidate in ordered:
        try:
            if parsed.satisfied_by(candidate.version):
                return candidate.version
        except ValueError:
            continue
    return newest


def installable(resolved: Iterable[ResolvedDependency]) -> List[ResolvedDependency]:
    """conflicts are shown to the user but never installed."""
    return [dep for dep in resolved if dep.type != "conflict"]


def default_selection(resolved: Iterable[ResolvedDependency]) -> Set[str]:
    return {dep.mod_id for dep in installable(resolved)}


def toggle_selection(selected: Set[str], mod_id: str) -> Set[str]:
    return selected - {mod_id} if mod_id in selected else selected | {mod_id}


def build_install_list(
    mod_id: str,
    version: str,
    resolved: Iterable[ResolvedDependency],
    selected: Set[str],
    installed_in_profile: Set[str] = frozenset(),
) -> List[InstallRequest]:
    """the requested mod followed by selected dependencies the profile lacks."""
    requests = [InstallRequest(mod_id=mod_id, version=version)]
    for dep in installable(resolved):
        if dep.mod_id in selected and dep.mod_id not in installed_in_profile:
            requests.append(InstallRequest(mod_id=dep.mod_id, version=dep.resolved_version))
    return requests
