"""In-memory block storage implementation."""

import threading
from dataclasses import replace
from typing import Dict, Iterator, Optional

from ..block import Block, load_block, meta_stats, validate, with_stats
from ..listing import ListOptions, select_stats
from ..multihash import Multihash
from ..utils import utc_now
from .base import BlockStat


class MemoryBlockStore:
    """
    Block store backed by a dictionary.

    Blocks are realized and verified on put so lazy sources are never
    retained. Data is lost when the process exits.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._blocks: Dict[Multihash, Block] = {}

    def list_stats(self, options: ListOptions) -> Iterator[BlockStat]:
        with self._lock:
            stats = [meta_stats(block) for block in self._blocks.values()]
        stats.sort(key=lambda s: s.id.hex)
        return select_stats(options, stats)

    def stat(self, id: Multihash) -> Optional[BlockStat]:
        with self._lock:
            block = self._blocks.get(id)
        return meta_stats(block) if block is not None else None

    def get(self, id: Multihash) -> Optional[Block]:
        with self._lock:
            return self._blocks.get(id)

    def put(self, block: Block) -> Block:
        # Realize outside the lock; lazy content may be slow to read
        with self._lock:
            existing = self._blocks.get(block.id)
        if existing is not None:
            return existing

        literal = replace(load_block(block), attributes={}, meta={})
        validate(literal)
        stored = with_stats(literal, BlockStat(id=block.id, size=block.size, stored_at=utc_now()))
        with self._lock:
            return self._blocks.setdefault(block.id, stored)

    def delete(self, id: Multihash) -> bool:
        with self._lock:
            return self._blocks.pop(id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._blocks)
