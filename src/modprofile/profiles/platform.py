import json
import shutil
from pathlib import Path
from typing import Any, List, NamedTuple, Union

PathLike = Union[str, Path]


class DirEntry(NamedTuple):
    name: str
    is_dir: bool


class ProfilePlatformAdapter:
    """filesystem operations used by the profile repository."""

    def join(self, *parts: PathLike) -> Path:
        if not parts:
            raise ValueError("No path parts provided")
        return Path(parts[0]).joinpath(*parts[1:])

    def ensure_dir(self, path: PathLike) -> Path:
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def remove_path(self, path: PathLike) -> None:
        """remove a file or a whole directory tree; missing paths are ignored."""
        path = Path(path)
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()

    def list_dir(self, path: PathLike) -> List[DirEntry]:
        return [DirEntry(entry.name, entry.is_dir()) for entry in sorted(Path(path).iterdir())]

    def read_json(self, path: PathLike) -> Any:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def write_json(self, path: PathLike, data: Any) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
