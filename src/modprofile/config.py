import os
from pathlib import Path
from typing import Dict, Optional

CONFIG_DIR = Path.home() / ".modprofile"
CONFIG_FILE = CONFIG_DIR / "config"

CATALOG_URL_KEY = "MODPROFILE_CATALOG_URL"
RUNTIME_URL_KEY = "MODPROFILE_RUNTIME_URL"
DATA_DIR_KEY = "MODPROFILE_DATA_DIR"

DEFAULT_CATALOG_URL = "https://api.modprofile.dev"
DEFAULT_RUNTIME_URL = (
    "https://builds.bepinex.dev/projects/bepinex_be/738/"
    "BepInEx-Unity.IL2CPP-win-x86-6.0.0-be.738%2Baf0cba7.zip"
)

LEGACY_REGISTRY_NAME = "registry.json"


def _read_config(config_file: Path = None) -> Dict[str, str]:
    """read ``KEY=value`` lines from the config file."""
    config_file = config_file or CONFIG_FILE
    config = {}
    if not config_file.exists():
        return config

    try:
        with open(config_file, "r") as f:
            for line in f:
                line = line.strip()
                if "=" in line:
                    key, value = line.split("=", 1)
                    config[key] = value
    except (IOError, PermissionError, OSError):
        # if we can't read the file, treat as not configured
        return {}
    return config


def get_value(key: str, config_file: Path = None) -> Optional[str]:
    """environment first, then the config file."""
    env_value = os.environ.get(key)
    if env_value:
        return env_value
    return _read_config(config_file).get(key)


def set_value(key: str, value: str, config_file: Path = None):
    """set a config value, preserving other config values."""
    config_file = config_file or CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)

    config = _read_config(config_file)
    config[key] = value

    try:
        with open(config_file, "w") as f:
            for k, v in config.items():
                f.write(f"{k}={v}\n")
    except (IOError, PermissionError, OSError) as e:
        raise RuntimeError(f"failed to write config file: {e}") from e


def get_catalog_url() -> str:
    return (get_value(CATALOG_URL_KEY) or DEFAULT_CATALOG_URL).rstrip("/")


def set_catalog_url(url: str):
    set_value(CATALOG_URL_KEY, url)


def get_runtime_url() -> str:
    return get_value(RUNTIME_URL_KEY) or DEFAULT_RUNTIME_URL


def get_data_dir() -> Path:
    """directory holding ``profiles/``, the legacy registry and caches."""
    value = get_value(DATA_DIR_KEY)
    return Path(value).expanduser() if value else CONFIG_DIR


def get_legacy_registry_path() -> Path:
    return get_data_dir() / LEGACY_REGISTRY_NAME


def get_runtime_cache_path() -> Path:
    return get_data_dir() / "cache" / "bepinex.zip"
