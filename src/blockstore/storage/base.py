"""Base protocols for block storage implementations."""

from datetime import datetime
from typing import Iterable, Iterator, List, Optional, Protocol, Set, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..block import Block
from ..listing import ListOptions
from ..multihash import Multihash


class BlockStat(BaseModel):
    """Storage statistics for a single block, as returned by listings."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: Multihash
    size: int = Field(ge=0)
    stored_at: Optional[datetime] = None
    source: Optional[str] = None     # Backend-specific location, e.g. a file URI

    @field_validator("id", mode="before")
    @classmethod
    def parse_id(cls, v):
        """Accept canonical hex strings as well as Multihash values."""
        if isinstance(v, str):
            return Multihash.from_hex(v)
        return v

    def __str__(self) -> str:
        return f"{self.id.hex} {self.size}"


@runtime_checkable
class BlockStore(Protocol):
    """
    Protocol for block storage implementations.

    Keys are multihash identities; values are immutable blocks. A block
    returned for id X must have id exactly X. Listings are ascending by the
    canonical hex encoding of the id.
    """

    def list_stats(self, options: ListOptions) -> Iterator[BlockStat]:
        """
        Enumerate stored blocks lazily.

        Args:
            options: Validated listing options (algorithm, after, limit)

        Returns:
            Iterator of block stats in ascending id order
        """
        ...

    def stat(self, id: Multihash) -> Optional[BlockStat]:
        """Return stats for a stored block, or None if absent."""
        ...

    def get(self, id: Multihash) -> Optional[Block]:
        """Fetch a block, or None if absent."""
        ...

    def put(self, block: Block) -> Block:
        """
        Store a block.

        Storing identical content twice is idempotent.

        Returns:
            The canonical stored block, which may differ in content variant
        """
        ...

    def delete(self, id: Multihash) -> bool:
        """Remove a block; True iff it existed and was removed."""
        ...


@runtime_checkable
class BatchingStore(Protocol):
    """Optional capability for stores with optimized bulk operations."""

    def get_batch(self, ids: List[Multihash]) -> List[Block]:
        ...

    def put_batch(self, blocks: List[Block]) -> List[Block]:
        ...

    def delete_batch(self, ids: Iterable[Multihash]) -> Set[Multihash]:
        ...
