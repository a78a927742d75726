"""
Pluggable favorites backend factory.

Creates the persistence gateway for a store based on configuration.
Built-in backends are ``sqlite`` (default), ``json`` and ``memory``.
External backends register via the ``bookshelf.backends`` entry point group.

External backend packages provide a factory function::

    def create_gateway(config: ShelfConfig) -> FavoritesGatewayProtocol:
        ...

and register it in their pyproject.toml::

    [project.entry-points."bookshelf.backends"]
    my-backend = "my_package.backend:create_gateway"
"""

from .config import ShelfConfig
from .protocol import FavoritesGatewayProtocol


def create_gateway(config: ShelfConfig) -> FavoritesGatewayProtocol:
    """Create the favorites gateway for ``config.backend``."""
    from .favorites_store import (
        InMemoryFavoritesStore,
        JSONFileFavoritesStore,
        SQLiteFavoritesStore,
    )

    if config.backend == "sqlite":
        return SQLiteFavoritesStore(config.path / "favorites.db", key=config.key)
    if config.backend == "json":
        return JSONFileFavoritesStore(config.path / "favorites.json")
    if config.backend == "memory":
        return InMemoryFavoritesStore()
    return _load_backend(config.backend, config)


def _load_backend(name: str, config: ShelfConfig) -> FavoritesGatewayProtocol:
    """Load a backend by entry point name."""
    from importlib.metadata import entry_points

    eps = entry_points(group="bookshelf.backends")
    for ep in eps:
        if ep.name == name:
            factory = ep.load()
            return factory(config)

    available = [ep.name for ep in eps]
    if available:
        raise ValueError(
            f"Unknown backend: {name!r}. Available: sqlite, json, memory, {', '.join(available)}"
        )
    raise ValueError(
        f"Unknown backend: {name!r}. Available: sqlite, json, memory"
    )
