"""Bounded caching block store.

A ``CacheStore`` layers a fast, size-limited cache store in front of an
authoritative primary store. Reads check the cache first and populate it from
the primary on a miss; writes go through to the primary and are cached as
well. When the total cached size exceeds the limit, the lowest-priority
blocks are evicted ("reaped") until it fits again. Cache hits are realized in
memory, so a later eviction never invalidates a block already handed out, and
a read that overlaps a delete never puts the deleted block back in the cache.

Lifecycle:
    UNSTARTED -> STARTED -> STOPPED

Starting scans the existing cache store contents into the priority table, so
a persistent cache survives restarts. Stopping leaves cached data in place.
"""

import itertools
import logging
import threading
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional

from ..block import Block, load_block, preferred_copy
from ..errors import (
    InvalidArgumentError,
    LifecycleError,
    MissingDependencyError,
    NotStartedError,
)
from ..listing import ListOptions
from ..multihash import Multihash
from ..utils import humanize_size
from .base import BlockStat, BlockStore

logger = logging.getLogger(__name__)

# policy(previous_priority, tick) -> new priority; lowest priority is evicted first
PriorityPolicy = Callable[[Optional[int], int], int]


def lru(previous: Optional[int], tick: int) -> int:
    """Least-recently-used: priority is the tick of the latest access."""
    return tick


def lfu(previous: Optional[int], tick: int) -> int:
    """Least-frequently-used: priority is the number of accesses."""
    return (previous or 0) + 1


class CacheState:
    """Priority and size accounting for cache-resident blocks.

    All mutation goes through the ``record_*`` transitions, each applied
    atomically under an internal lock, so ``priorities``, ``sizes`` and
    ``total_size`` always agree with each other.
    """

    def __init__(self, policy: PriorityPolicy = lru):
        self._lock = threading.Lock()
        self._policy = policy
        self._ticks = itertools.count(1)
        self.priorities: Dict[Multihash, int] = {}
        self.sizes: Dict[Multihash, int] = {}
        self.total_size = 0

    def _bump(self, id: Multihash) -> None:
        self.priorities[id] = self._policy(self.priorities.get(id), next(self._ticks))

    def record_hit(self, id: Multihash) -> None:
        """Bump the priority of a tracked block; untracked ids are ignored."""
        with self._lock:
            if id in self.sizes:
                self._bump(id)

    def record_insert(self, id: Multihash, size: int) -> int:
        """Track a newly cached block. Returns the new total size."""
        with self._lock:
            if id not in self.sizes:
                self.sizes[id] = size
                self.total_size += size
            self._bump(id)
            return self.total_size

    def record_evict(self, id: Multihash) -> int:
        """Forget a cached block. Returns the number of bytes released."""
        with self._lock:
            size = self.sizes.pop(id, None)
            if size is None:
                return 0
            self.priorities.pop(id, None)
            self.total_size -= size
            return size

    def victims(self, target_size: int) -> List[Multihash]:
        """Select the lowest-priority ids whose removal brings the total to target_size."""
        with self._lock:
            excess = self.total_size - target_size
            chosen = []
            if excess <= 0:
                return chosen
            order = sorted(self.priorities, key=lambda id: (self.priorities[id], id.hex))
            for id in order:
                if excess <= 0:
                    break
                chosen.append(id)
                excess -= self.sizes[id]
            return chosen

    def snapshot(self) -> dict:
        """Consistent copy of the accounting state."""
        with self._lock:
            return {
                "priorities": dict(self.priorities),
                "sizes": dict(self.sizes),
                "total_size": self.total_size,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self.sizes)


class CacheStatus(str, Enum):
    """Lifecycle state of a cache store."""
    UNSTARTED = "unstarted"
    STARTED = "started"
    STOPPED = "stopped"


def _check_positive(name: str, value) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise InvalidArgumentError(f"{name} must be a positive integer, got {value!r}")
    return value


class CacheStore:
    """
    Composite store with a bounded cache in front of a primary store.

    Attributes:
        size_limit: Maximum total bytes kept in the cache store
        max_block_size: Blocks larger than this are never cached
        primary: Authoritative store
        cache: Fast, bounded store
        state: Priority and size accounting for cached blocks
    """

    def __init__(
        self,
        size_limit: int,
        *,
        max_block_size: Optional[int] = None,
        primary: Optional[BlockStore] = None,
        cache: Optional[BlockStore] = None,
        policy: PriorityPolicy = lru,
    ):
        """
        Initialize the cache store. Sub-stores may be attached later, before start().

        Args:
            size_limit: Maximum cached bytes (positive integer)
            max_block_size: Largest cacheable block in bytes (defaults to size_limit)
            primary: Authoritative store
            cache: Cache store
            policy: Eviction priority policy (default least-recently-used)

        Raises:
            InvalidArgumentError: If a size parameter is not a positive integer
        """
        self.size_limit = _check_positive("size_limit", size_limit)
        if max_block_size is None:
            self.max_block_size = size_limit
        else:
            self.max_block_size = _check_positive("max_block_size", max_block_size)
        self.primary = primary
        self.cache = cache
        self.status = CacheStatus.UNSTARTED
        self._policy = policy
        self.state = CacheState(policy)
        # Serializes cache-side writes with their accounting and reaps
        self._write_lock = threading.RLock()
        # Bumped by every delete; a read that started under an older
        # generation must not repopulate the cache
        self._generation = 0

    # ---- Lifecycle ---------------------------------------------------------

    def _check_dependencies(self) -> None:
        if self.primary is None:
            raise MissingDependencyError("CacheStore", "primary")
        if self.cache is None:
            raise MissingDependencyError("CacheStore", "cache")

    def _require_running(self) -> None:
        self._check_dependencies()
        if self.status is not CacheStatus.STARTED:
            raise NotStartedError(f"CacheStore is {self.status.value}; call start() first")

    def start(self) -> "CacheStore":
        """
        Start the store, scanning existing cache contents into the accounting state.

        Starting an already-started store is a no-op.

        Raises:
            MissingDependencyError: If either sub-store is missing
            LifecycleError: If the store was already stopped
        """
        self._check_dependencies()
        with self._write_lock:
            if self.status is CacheStatus.STARTED:
                return self
            if self.status is CacheStatus.STOPPED:
                raise LifecycleError("CacheStore has been stopped and cannot be restarted")

            state = CacheState(self._policy)
            for stat in self.cache.list_stats(ListOptions()):
                state.record_insert(stat.id, stat.size)
            self.state = state
            self.status = CacheStatus.STARTED

        logger.info(
            "Cache store started with %d cached blocks (%s of %s)",
            len(state), humanize_size(state.total_size), humanize_size(self.size_limit),
        )
        return self

    def stop(self) -> "CacheStore":
        """Stop the store. Cached data stays in the cache store."""
        self.status = CacheStatus.STOPPED
        return self

    def __enter__(self) -> "CacheStore":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # ---- Cache maintenance -------------------------------------------------

    def _cache_block(self, block: Block, generation: int) -> None:
        with self._write_lock:
            if generation != self._generation:
                logger.debug("Not caching %s; a delete ran while it was read", block.id)
                return
            self.cache.put(block)
            total = self.state.record_insert(block.id, block.size)
            logger.debug("Cached block %s (%d bytes, total %d)", block.id, block.size, total)
            if total > self.size_limit:
                self._reap(self.size_limit)

    def _reap(self, target_size: int) -> int:
        freed = 0
        victims = self.state.victims(target_size)
        for id in victims:
            self.cache.delete(id)
            freed += self.state.record_evict(id)
            logger.debug("Evicted block %s from cache", id)
        if victims:
            logger.info("Reaped %d blocks (%s) from cache", len(victims), humanize_size(freed))
        return freed

    def reap(self, target_size: Optional[int] = None) -> int:
        """
        Evict lowest-priority cached blocks until the total size is at most target_size.

        Never touches the primary store.

        Args:
            target_size: Desired maximum cached bytes (defaults to size_limit)

        Returns:
            Number of bytes freed
        """
        self._require_running()
        if target_size is None:
            target_size = self.size_limit
        elif not isinstance(target_size, int) or isinstance(target_size, bool) or target_size < 0:
            raise InvalidArgumentError(f"target_size must be a non-negative integer, got {target_size!r}")
        with self._write_lock:
            return self._reap(target_size)

    @property
    def total_size(self) -> int:
        return self.state.total_size

    # ---- BlockStore --------------------------------------------------------

    def list_stats(self, options: ListOptions) -> Iterator[BlockStat]:
        self._require_running()
        return self.primary.list_stats(options)

    def stat(self, id: Multihash) -> Optional[BlockStat]:
        self._require_running()
        stat = self.cache.stat(id)
        if stat is None:
            stat = self.primary.stat(id)
        return stat

    def get(self, id: Multihash) -> Optional[Block]:
        self._require_running()
        generation = self._generation
        cached = self.cache.get(id)
        if cached is not None:
            # Realize the hit so a later reap cannot pull the content away
            try:
                hit = load_block(cached)
            except FileNotFoundError:
                logger.debug("Cached block %s was reaped while being read", id)
            else:
                self.state.record_hit(id)
                logger.debug("Cache hit: %s", id)
                return hit

        block = self.primary.get(id)
        if block is None:
            return None
        logger.debug("Cache miss: %s", id)
        if block.size <= self.max_block_size:
            self._cache_block(block, generation)
        return block

    def put(self, block: Block) -> Block:
        self._require_running()
        generation = self._generation
        stored = self.primary.put(block)
        if block.size <= self.max_block_size:
            self._cache_block(preferred_copy(block, stored), generation)
        return stored

    def delete(self, id: Multihash) -> bool:
        self._require_running()
        with self._write_lock:
            self._generation += 1
            removed = self.primary.delete(id)
            cached = self.cache.delete(id)
            self.state.record_evict(id)
        return removed or cached

    def __repr__(self) -> str:
        return (
            f"CacheStore(size_limit={self.size_limit}, max_block_size={self.max_block_size}, "
            f"status={self.status.value}, total_size={self.state.total_size})"
        )
