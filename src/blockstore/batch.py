"""Batch operations with optional backend acceleration.

Each operation checks whether the store implements ``BatchingStore`` and, if
so, returns the backend's result verbatim. Otherwise it folds the single-item
operation over the input sequentially, in input order.
"""

import logging
from typing import Iterable, List, Mapping, Set

from .block import Block
from .errors import InvalidArgumentError
from .multihash import Multihash
from .storage.base import BatchingStore, BlockStore

logger = logging.getLogger(__name__)


def _as_batch(value, what: str) -> list:
    if (
        value is None
        or isinstance(value, (str, bytes, bytearray, Mapping))
        or not isinstance(value, Iterable)
    ):
        raise InvalidArgumentError(f"Batch of {what} must be a collection, got {value!r}")
    return list(value)


def _check_ids(ids) -> List[Multihash]:
    ids = _as_batch(ids, "ids")
    for id in ids:
        if not isinstance(id, Multihash):
            raise InvalidArgumentError(f"Batch contains a non-multihash id: {id!r}")
    return ids


def _check_blocks(blocks) -> List[Block]:
    blocks = _as_batch(blocks, "blocks")
    for block in blocks:
        if not isinstance(block, Block):
            raise InvalidArgumentError(f"Batch contains a non-block value: {block!r}")
    return blocks


def get_batch(store: BlockStore, ids: Iterable[Multihash]) -> List[Block]:
    """
    Fetch several blocks.

    Without an optimized backend path, ids that are not stored are omitted
    and the found blocks keep input order.
    """
    ids = _check_ids(ids)
    if isinstance(store, BatchingStore):
        return store.get_batch(ids)
    logger.debug("Fetching %d blocks one at a time", len(ids))
    blocks = []
    for id in ids:
        block = store.get(id)
        if block is not None:
            blocks.append(block)
    return blocks


def put_batch(store: BlockStore, blocks: Iterable[Block]) -> List[Block]:
    """Store several blocks, returning the stored blocks in input order."""
    blocks = _check_blocks(blocks)
    if isinstance(store, BatchingStore):
        return store.put_batch(blocks)
    logger.debug("Storing %d blocks one at a time", len(blocks))
    return [store.put(block) for block in blocks]


def delete_batch(store: BlockStore, ids: Iterable[Multihash]) -> Set[Multihash]:
    """Remove several blocks, returning the set of ids actually removed."""
    ids = _check_ids(ids)
    if isinstance(store, BatchingStore):
        return store.delete_batch(ids)
    logger.debug("Deleting %d blocks one at a time", len(ids))
    return {id for id in ids if store.delete(id)}
