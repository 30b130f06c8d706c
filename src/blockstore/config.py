"""Store configuration helpers.

Configuration is read from YAML:

    uri: file:/var/lib/blocks
    cache:
      uri: file:/tmp/block-cache
      size_limit: 1073741824
      max_block_size: 16777216

The file is located by explicit path, then ``$BLOCKSTORE_CONFIG``, then
``./blockstore.yaml``. ``$BLOCKSTORE_URI`` overrides the primary store URI.
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .constants import CONFIG_ENV_VAR, CONFIG_FILE, DEFAULT_STORE_URI, URI_ENV_VAR
from .errors import InvalidArgumentError
from .storage import BlockStore, CacheStore, make_block_store


class CacheConfig(BaseModel):
    """Cache layer in front of the primary store."""
    uri: str
    size_limit: int = Field(gt=0)
    max_block_size: Optional[int] = Field(default=None, gt=0)


class StoreConfig(BaseModel):
    """Block store configuration (stored in blockstore.yaml)."""
    uri: str = DEFAULT_STORE_URI
    cache: Optional[CacheConfig] = None

    def build(self) -> BlockStore:
        """
        Construct the configured store.

        Returns:
            The primary store, or a started CacheStore wrapping it when a
            cache is configured
        """
        primary = make_block_store(self.uri)
        if self.cache is None:
            return primary
        store = CacheStore(
            self.cache.size_limit,
            max_block_size=self.cache.max_block_size,
            primary=primary,
            cache=make_block_store(self.cache.uri),
        )
        return store.start()


def find_config_path(path: Optional[Path] = None) -> Optional[Path]:
    """Resolve which config file to read, if any."""
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    default = Path.cwd() / CONFIG_FILE
    return default if default.exists() else None


def load_store_config(path: Optional[Path] = None) -> StoreConfig:
    """
    Load store configuration.

    A missing default file yields the defaults; an explicitly named file
    that doesn't exist is an error.

    Raises:
        FileNotFoundError: If an explicitly requested config file is missing
        InvalidArgumentError: If the file is not a YAML mapping
        pydantic.ValidationError: If a value is invalid
    """
    cfg_path = find_config_path(path)
    data = {}
    if cfg_path is not None:
        if not cfg_path.exists():
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        data = yaml.safe_load(cfg_path.read_text()) or {}
        if not isinstance(data, dict):
            raise InvalidArgumentError(f"Config file {cfg_path} must contain a mapping")

    env_uri = os.environ.get(URI_ENV_VAR)
    if env_uri:
        data["uri"] = env_uri
    return StoreConfig(**data)
