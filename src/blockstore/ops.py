"""Core operations over any block store.

These functions validate arguments before dispatching to the backend, so every
store gets the same precondition checks and error messages.
"""

from dataclasses import replace
from pathlib import Path
from typing import Iterator, Mapping, Optional

from .block import Block, from_file, read_block
from .errors import IntegrityError, InvalidArgumentError
from .listing import ListOptions, validate_list_options
from .multihash import Multihash
from .storage.base import BlockStat, BlockStore


def _check_id(id) -> Multihash:
    if not isinstance(id, Multihash):
        raise InvalidArgumentError(f"Block id must be a multihash, got {id!r}")
    return id


def list_blocks(store: BlockStore, options: Optional[Mapping] = None, **kwargs) -> Iterator[BlockStat]:
    """
    Enumerate blocks in a store.

    Options may be given as a mapping, as keyword arguments, or both; keyword
    arguments win.

    Args:
        store: Store to enumerate
        options: Mapping of ``algorithm``, ``after``, ``limit``

    Returns:
        Lazy iterator of block stats in ascending id order

    Raises:
        InvalidArgumentError: If an option key or value is not valid
    """
    if isinstance(options, ListOptions):
        merged = options.model_dump(exclude_none=True)
    else:
        merged = dict(options or {})
    merged.update(kwargs)
    return store.list_stats(validate_list_options(merged))


def stat(store: BlockStore, id: Multihash) -> Optional[BlockStat]:
    """Return stats for a block, or None if it is not stored."""
    return store.stat(_check_id(id))


def get(store: BlockStore, id: Multihash) -> Optional[Block]:
    """
    Fetch a block by id.

    Raises:
        InvalidArgumentError: If id is not a multihash
        IntegrityError: If the store returns a block with a different id
    """
    block = store.get(_check_id(id))
    if block is not None and block.id != id:
        raise IntegrityError(f"Store returned block {block.id} for requested id {id}")
    return block


def put(store: BlockStore, block: Block) -> Block:
    """
    Store a block.

    The returned block carries the caller's extension attributes and
    metadata in addition to whatever the store recorded.
    """
    if not isinstance(block, Block):
        raise InvalidArgumentError(f"Can only store blocks, got {block!r}")
    stored = store.put(block)
    return replace(
        stored,
        attributes={**stored.attributes, **block.attributes},
        meta={**block.meta, **stored.meta},
    )


def store_source(store: BlockStore, source) -> Optional[Block]:
    """
    Store content from a source.

    Paths become lazy file-backed blocks; any other source is read into
    memory. Empty content stores nothing.

    Returns:
        Stored block, or None if the source was empty
    """
    if isinstance(source, Path):
        block = from_file(source)
    else:
        block = read_block(source)
    if block is None:
        return None
    return put(store, block)


def delete(store: BlockStore, id: Multihash) -> bool:
    """Remove a block; True iff it existed."""
    return store.delete(_check_id(id))

