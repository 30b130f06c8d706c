"""Shared test fixtures and utilities."""

import os
import random

import pytest

from blockstore.block import Block, read_block
from blockstore.storage import CacheStore, FileBlockStore, MemoryBlockStore


def random_bytes(size: int) -> bytes:
    """Return `size` bytes of random content."""
    return os.urandom(size)


@pytest.fixture
def make_block():
    """Factory fixture building a random literal block of an exact size."""
    def _make(size: int = 64) -> Block:
        return read_block(random_bytes(size))
    return _make


@pytest.fixture
def populate(make_block):
    """Factory fixture storing random blocks into a store.

    Sizes may be a list of exact sizes, or a count plus ``max_size`` for
    random sizes between 1 and ``max_size``.
    """
    def _populate(store, sizes=None, *, count: int = 10, max_size: int = 64):
        if sizes is None:
            sizes = [random.randint(1, max_size) for _ in range(count)]
        blocks = {}
        for size in sizes:
            block = make_block(size)
            store.put(block)
            blocks[block.id] = block
        return blocks
    return _populate


@pytest.fixture
def memory_store():
    return MemoryBlockStore()


@pytest.fixture
def file_store(tmp_path):
    return FileBlockStore(tmp_path / "store")


@pytest.fixture
def cache_store():
    """Started cache store over two memory stores."""
    store = CacheStore(
        16 * 1024,
        max_block_size=1024,
        primary=MemoryBlockStore(),
        cache=MemoryBlockStore(),
    )
    return store.start()


@pytest.fixture(params=["memory", "file", "cache"])
def any_store(request):
    """Each store implementation in turn."""
    return request.getfixturevalue(f"{request.param}_store")
