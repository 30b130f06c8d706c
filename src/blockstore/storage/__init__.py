"""Storage package: the block store contract and its implementations."""

from .base import BatchingStore, BlockStat, BlockStore
from .cache import CacheStore
from .factory import make_block_store
from .fs import FileBlockStore
from .memory import MemoryBlockStore

__all__ = [
    "BatchingStore",
    "BlockStat",
    "BlockStore",
    "CacheStore",
    "FileBlockStore",
    "MemoryBlockStore",
    "make_block_store",
]
