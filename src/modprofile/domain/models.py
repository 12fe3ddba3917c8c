from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Annotated, Dict, List, Literal, Optional, Union

IconMode = Literal["default", "custom", "mod"]
DependencyType = Literal["required", "optional", "conflict"]
DownloadStage = Literal["connecting", "downloading", "verifying", "writing", "complete"]
InstallStage = Literal["downloading", "extracting", "complete"]

MAX_PROFILE_NAME_LENGTH = 100


class ProfileModEntry(BaseModel):
    """a mod declared in a profile; ``file`` is the installed plugin filename."""
    mod_id: str
    version: str
    file: Optional[str] = None


class Profile(BaseModel):
    """persisted profile metadata (``metadata.json``)."""
    id: str
    name: str = Field(max_length=MAX_PROFILE_NAME_LENGTH)
    path: str
    created_at: int
    last_launched_at: Optional[int] = None
    bepinex_installed: bool = False
    total_play_time: int = 0
    icon_mode: IconMode = "default"
    custom_icon_data_url: Optional[str] = None
    icon_mod_id: Optional[str] = None
    mods: List[ProfileModEntry] = Field(default_factory=list)

    def find_mod(self, mod_id: str) -> Optional[ProfileModEntry]:
        return next((mod for mod in self.mods if mod.mod_id == mod_id), None)

    def to_document(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class ManagedMod(BaseModel):
    source: Literal["managed"] = "managed"
    mod_id: str
    version: str
    file: str


class CustomMod(BaseModel):
    source: Literal["custom"] = "custom"
    file: str


UnifiedMod = Annotated[Union[ManagedMod, CustomMod], Field(discriminator="source")]


class IconSelection(BaseModel):
    mode: IconMode
    data_url: Optional[str] = None
    mod_id: Optional[str] = None


# catalog records

class CatalogMod(BaseModel):
    id: str = Field(max_length=100)
    name: str = Field(max_length=100)
    author: str = Field(default="", max_length=100)
    description: str = Field(default="", max_length=500)
    created_at: int = 0
    updated_at: int = 0
    downloads: int = 0


class ModVersion(BaseModel):
    version: str
    created_at: int


class ModDependency(BaseModel):
    mod_id: str
    version_constraint: str = "*"
    type: DependencyType = "required"


class ModVersionInfo(BaseModel):
    version: str = ""
    file_name: str
    download_url: str
    checksum: str
    dependencies: List[ModDependency] = Field(default_factory=list)

    @field_validator("file_name")
    @classmethod
    def _bare_file_name(cls, value: str) -> str:
        # written straight into the plugins directory
        if value in ("", ".", "..") or "/" in value or "\\" in value:
            raise ValueError(f"file name must be a bare name, got '{value}'")
        return value


class ResolvedDependency(ModDependency):
    mod_name: str
    resolved_version: str


class InstallRequest(BaseModel):
    mod_id: str
    version: str


class InstalledMod(BaseModel):
    mod_id: str
    version: str
    file_name: str


# event payloads

class DownloadProgress(BaseModel):
    mod_id: str
    downloaded: int = 0
    total: Optional[int] = None
    progress: float = 0
    stage: DownloadStage


class InstallProgress(BaseModel):
    stage: InstallStage
    progress: float = 0
    message: str = ""


class GameState(BaseModel):
    """runtime signal; single-instance payloads carry ``profileId`` only."""
    model_config = ConfigDict(populate_by_name=True)

    running: bool
    profile_id: Optional[str] = Field(default=None, alias="profileId")
    running_count: Optional[int] = None
    profile_instance_counts: Optional[Dict[str, int]] = None


class ProfilesInvalidated(BaseModel):
    profile_id: Optional[str] = None


class DiskFilesInvalidated(BaseModel):
    profile_path: str
