"""Factory for creating block store instances from URIs."""

import urllib.parse
from pathlib import Path

from ..errors import InvalidArgumentError
from .base import BlockStore
from .fs import FileBlockStore
from .memory import MemoryBlockStore


def make_block_store(uri: str) -> BlockStore:
    """
    Create a block store from a URI.

    Supported forms:
        mem:-                     fresh in-memory store
        file:relative/dir         filesystem store
        file:///absolute/dir      filesystem store

    Args:
        uri: Store URI

    Returns:
        BlockStore instance

    Raises:
        InvalidArgumentError: If the URI is malformed
        NotImplementedError: If the scheme is not supported
    """
    if not isinstance(uri, str) or ":" not in uri:
        raise InvalidArgumentError(f"Store URI must look like <scheme>:<location>, got {uri!r}")

    parsed = urllib.parse.urlparse(uri)
    if parsed.query or parsed.fragment:
        raise InvalidArgumentError(f"Store URI cannot have a query or fragment: {uri!r}")

    if parsed.scheme == "mem":
        return MemoryBlockStore()

    elif parsed.scheme == "file":
        location = urllib.parse.unquote(parsed.netloc + parsed.path)
        if not location:
            raise InvalidArgumentError(f"File store URI has no path: {uri!r}")
        return FileBlockStore(Path(location))

    else:
        raise NotImplementedError(f"Store scheme {parsed.scheme!r} not supported")
