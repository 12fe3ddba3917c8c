import json
import logging
from pathlib import Path
from typing import List

from pydantic import TypeAdapter, ValidationError

from ..domain.models import Profile

logger = logging.getLogger(__name__)

_profiles_adapter = TypeAdapter(List[Profile])


class LegacyRegistry:
    """
    the pre-``metadata.json`` registry: one JSON document whose ``profiles``
    key holds every profile record.
    """

    def __init__(self, registry_file: Path):
        self.registry_file = registry_file

    def _load(self) -> dict:
        if not self.registry_file.exists():
            return {}

        try:
            with open(self.registry_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, ValueError, OSError) as e:
            logger.warning(f"could not read legacy registry {self.registry_file}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def load_profiles(self) -> List[Profile]:
        """legacy profile records; an invalid list counts as empty."""
        raw = self._load().get("profiles") or []
        try:
            return _profiles_adapter.validate_python(raw)
        except ValidationError as e:
            logger.warning(f"legacy registry profiles failed validation: {e.error_count()} error(s)")
            return []

    def clear_profiles(self) -> None:
        """empty the legacy profile list, keeping any other keys."""
        data = self._load()
        data["profiles"] = []

        self.registry_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.registry_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
