"""Configuration loader for marginalia.toml."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

CONFIG_NAME = "marginalia.toml"


@dataclass
class VaultConfig:
    """Vault-specific configuration."""
    root: Path


@dataclass
class CacheConfig:
    """Note cache configuration."""
    capacity: int = 20


@dataclass
class SearchConfig:
    """Default find options."""
    case_sensitive: bool = False
    whole_word: bool = False


@dataclass
class WatchConfig:
    """Vault watcher configuration."""
    debounce_ms: int = 150


@dataclass
class UIConfig:
    """UI configuration."""
    colors: bool = True


@dataclass
class MarginaliaConfig:
    """Complete marginalia configuration."""
    vault: VaultConfig
    cache: CacheConfig
    search: SearchConfig
    watch: WatchConfig
    ui: UIConfig


def load_config(config_path: Path | None = None, vault_path: Path | None = None) -> MarginaliaConfig:
    """
    Load configuration from marginalia.toml.

    Search order:
    1. config_path (if provided)
    2. cwd/marginalia.toml
    3. vault_path/marginalia.toml

    Args:
        config_path: Explicit path to config file
        vault_path: Vault root path for fallback search

    Returns:
        MarginaliaConfig with resolved settings
    """
    toml_data: dict[str, Any] = {}

    search_paths = []
    if config_path:
        search_paths.append(config_path)
    search_paths.append(Path.cwd() / CONFIG_NAME)
    if vault_path:
        search_paths.append(vault_path / CONFIG_NAME)

    for path in search_paths:
        if path.exists():
            with open(path, "rb") as f:
                toml_data = tomllib.load(f)
            break

    vault_data = toml_data.get("vault", {})
    vault_config = VaultConfig(
        root=Path(vault_data.get("root", vault_path or Path("./vault"))),
    )

    cache_data = toml_data.get("cache", {})
    capacity = int(cache_data.get("capacity", 20))
    if capacity < 1:
        raise ValueError(f"cache.capacity must be at least 1, got {capacity}")
    cache_config = CacheConfig(capacity=capacity)

    search_data = toml_data.get("search", {})
    search_config = SearchConfig(
        case_sensitive=bool(search_data.get("case_sensitive", False)),
        whole_word=bool(search_data.get("whole_word", False)),
    )

    watch_data = toml_data.get("watch", {})
    watch_config = WatchConfig(
        debounce_ms=int(watch_data.get("debounce_ms", 150))
    )

    ui_data = toml_data.get("ui", {})
    ui_config = UIConfig(
        colors=ui_data.get("colors", True)
    )

    return MarginaliaConfig(
        vault=vault_config,
        cache=cache_config,
        search=search_config,
        watch=watch_config,
        ui=ui_config,
    )
