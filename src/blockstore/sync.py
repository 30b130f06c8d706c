"""Block synchronization between stores.

Sync diffs two ascending block listings with a pair of cursors, advancing
whichever side holds the smaller id, and copies the blocks that only the
source holds. Neither listing is ever materialized, so sync scales to stores
much larger than memory.
"""

import logging
from typing import Callable, Iterable, Iterator, Optional

from pydantic import BaseModel

from . import ops
from .listing import StatCursor
from .storage.base import BlockStat, BlockStore
from .utils import humanize_size

logger = logging.getLogger(__name__)

StatFilter = Callable[[BlockStat], bool]


class SyncSummary(BaseModel):
    """Result of a sync: number and total size of blocks copied."""
    count: int = 0
    size: int = 0


def missing_stats(source_stats: Iterable[BlockStat], dest_stats: Iterable[BlockStat]) -> Iterator[BlockStat]:
    """
    Yield the stats present in the source listing but not in the dest listing.

    Both inputs must be in ascending id order. They are consumed one element
    at a time; stopping iteration early has no side effects.
    """
    source = StatCursor(source_stats)
    dest = StatCursor(dest_stats)
    while not source.done:
        if dest.done:
            yield source.current
            source.advance()
            continue

        source_hex = source.current.id.hex
        dest_hex = dest.current.id.hex
        if source_hex < dest_hex:
            yield source.current
            source.advance()
        elif source_hex == dest_hex:
            source.advance()
            dest.advance()
        else:
            dest.advance()


def sync(
    source: BlockStore,
    dest: BlockStore,
    *,
    filter: Optional[StatFilter] = None,
    dry_run: bool = False,
) -> SyncSummary:
    """
    Copy blocks present in source but absent from dest.

    Args:
        source: Store to copy from
        dest: Store to copy into
        filter: Optional predicate over a candidate's stats; only accepted
            candidates are copied
        dry_run: Count the candidates without copying anything

    Returns:
        SyncSummary with the count and total size of copied blocks
    """
    count = 0
    size = 0
    candidates = missing_stats(ops.list_blocks(source), ops.list_blocks(dest))
    for stat in candidates:
        if filter is not None and not filter(stat):
            continue

        if dry_run:
            count += 1
            size += stat.size
            continue

        block = ops.get(source, stat.id)
        if block is None:
            logger.warning("Block %s disappeared from source before it could be copied", stat.id)
            continue
        ops.put(dest, block)
        logger.debug("Copied block %s (%d bytes)", block.id, block.size)
        count += 1
        size += block.size

    logger.info("Sync %s %d blocks (%s)", "would copy" if dry_run else "copied", count, humanize_size(size))
    return SyncSummary(count=count, size=size)
