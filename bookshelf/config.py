"""
Configuration management for bookshelf stores.

The configuration is stored as a TOML file in the store directory.
It specifies which persistence backend holds the favorites slot.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# tomli_w for writing TOML (tomllib is read-only)
try:
    import tomli_w
except ImportError:
    tomli_w = None  # type: ignore

from .favorites_store import DEFAULT_SLOT_KEY


CONFIG_FILENAME = "bookshelf.toml"
CONFIG_VERSION = 1

STORE_PATH_ENV = "BOOKSHELF_STORE_PATH"


def get_default_store_path() -> Path:
    """Store directory: BOOKSHELF_STORE_PATH, else ~/.bookshelf."""
    env = os.environ.get(STORE_PATH_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / ".bookshelf"


def resolve_store_path(store_path: Optional[Path] = None) -> Path:
    """Explicit path wins over the environment and the default."""
    if store_path is not None:
        return Path(store_path).expanduser()
    return get_default_store_path()


@dataclass
class ShelfConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    # Persistence
    backend: str = "sqlite"
    key: str = DEFAULT_SLOT_KEY
    async_persist: bool = False

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def load_config(store_path: Path) -> ShelfConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = store_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Validate version
    version = data.get("store", {}).get("version", 1)
    if not isinstance(version, int) or isinstance(version, bool):
        raise ValueError(f"Config version must be an integer: {version!r}")
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    persistence = data.get("persistence", {})
    backend = persistence.get("backend", "sqlite")
    if not isinstance(backend, str) or not backend:
        raise ValueError(f"Invalid persistence backend: {backend!r}")

    return ShelfConfig(
        path=store_path,
        version=version,
        created=data.get("store", {}).get("created", ""),
        backend=backend,
        key=persistence.get("key", DEFAULT_SLOT_KEY),
        async_persist=bool(persistence.get("async", False)),
    )


def save_config(config: ShelfConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist.
    """
    if tomli_w is None:
        raise RuntimeError("tomli_w is required to save config. Install with: pip install tomli-w")

    config.path.mkdir(parents=True, exist_ok=True)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
        },
        "persistence": {
            "backend": config.backend,
            "key": config.key,
            "async": config.async_persist,
        },
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Path) -> ShelfConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    config_path = store_path / CONFIG_FILENAME

    if config_path.exists():
        return load_config(store_path)
    else:
        config = ShelfConfig(path=store_path)
        save_config(config)
        return config
