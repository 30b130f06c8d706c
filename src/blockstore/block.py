"""Immutable content-addressed blocks.

A block pairs a multihash identity and a declared size with its content.
Content is an explicit variant:

- ``LiteralContent``: bytes held in memory; the block is "realized".
- ``LazyContent``: an opener producing range-bounded streams on demand.
- ``ABSENT``: no content, e.g. a stat-only or emptied block.

Every consumer switches on the variant explicitly. Identity, size and content
never change after construction; extension attributes and out-of-band metadata
can be attached by building a new value. Metadata never participates in
equality.
"""

import io
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, BinaryIO, Callable, Mapping, Optional, Union

from .errors import (
    DigestMismatchError,
    InvalidArgumentError,
    InvalidIdentityError,
    InvalidRangeError,
    InvalidSizeError,
    NoContentError,
)
from .hashing import CHUNK_SIZE, digest, digest_stream
from .multihash import DEFAULT_ALGORITHM, Algorithm, Multihash

# opener(start, end) -> stream positioned at start; (None, None) opens everything
Opener = Callable[[Optional[int], Optional[int]], BinaryIO]

STATS_KEY = "stats"


@dataclass(frozen=True)
class LiteralContent:
    """Content held as an owned in-memory buffer."""
    data: bytes

    def __repr__(self) -> str:
        return f"LiteralContent(<{len(self.data)} bytes>)"


@dataclass(frozen=True)
class LazyContent:
    """Content produced on demand by a range-capable opener."""
    opener: Opener


@dataclass(frozen=True)
class AbsentContent:
    """Marker for blocks without content."""


ABSENT = AbsentContent()

Content = Union[LiteralContent, LazyContent, AbsentContent]


def _frozen(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True, eq=False)
class Block:
    """Immutable block value.

    Attributes:
        id: Multihash of the content
        size: Content length in bytes
        content: Literal, lazy, or absent content
        attributes: Extension attributes (participate in equality)
        meta: Out-of-band metadata such as storage stats (ignored by equality)
    """
    id: Multihash
    size: int
    content: Content = ABSENT
    attributes: Mapping[str, Any] = field(default_factory=dict)
    meta: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "attributes", _frozen(self.attributes))
        object.__setattr__(self, "meta", _frozen(self.meta))

    @property
    def realized(self) -> bool:
        """True when the content is held in memory."""
        return isinstance(self.content, LiteralContent)

    def deref(self) -> Optional[bytes]:
        """Return the in-memory content, or None for lazy and absent blocks."""
        if isinstance(self.content, LiteralContent):
            return self.content.data
        return None

    def with_attributes(self, **attrs) -> "Block":
        return replace(self, attributes={**self.attributes, **attrs})

    def with_meta(self, **meta) -> "Block":
        return replace(self, meta={**self.meta, **meta})

    def without_content(self) -> "Block":
        return replace(self, content=ABSENT)

    # Content is fully determined by the id, so equality only checks the
    # identity, the declared size and the extension attributes.
    def __eq__(self, other):
        if not isinstance(other, Block):
            return NotImplemented
        return (
            self.id == other.id
            and self.size == other.size
            and dict(self.attributes) == dict(other.attributes)
        )

    def __hash__(self):
        return hash((self.id, self.size))

    def __repr__(self) -> str:
        if isinstance(self.content, LiteralContent):
            kind = "literal"
        elif isinstance(self.content, LazyContent):
            kind = "lazy"
        else:
            kind = "absent"
        return f"Block({self.id}, size={self.size}, {kind})"


class _BoundedReader(io.RawIOBase):
    """Read at most ``limit`` bytes from an underlying stream."""

    def __init__(self, stream: BinaryIO, limit: int):
        self._stream = stream
        self._remaining = limit

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self._remaining <= 0:
            return 0
        view = memoryview(buffer).cast("B")[: self._remaining]
        data = self._stream.read(len(view))
        n = len(data)
        view[:n] = data
        self._remaining -= n
        return n

    def close(self) -> None:
        if not self.closed:
            try:
                self._stream.close()
            finally:
                super().close()


# ---- Construction ----------------------------------------------------------

def _coerce_bytes(source) -> bytes:
    if isinstance(source, str):
        return source.encode("utf-8")
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    if hasattr(source, "read"):
        data = source.read()
        if isinstance(data, str):
            return data.encode("utf-8")
        return bytes(data)
    raise InvalidArgumentError(f"Cannot read block content from {type(source).__name__}")


def read_block(source, algorithm: Algorithm = DEFAULT_ALGORITHM) -> Optional[Block]:
    """Read a source into a literal block.

    Args:
        source: bytes-like, str (encoded as UTF-8), or a readable stream
        algorithm: Digest algorithm for the identity

    Returns:
        Literal block, or None when the source is empty
    """
    data = _coerce_bytes(source)
    if not data:
        return None
    return Block(digest(data, algorithm), len(data), LiteralContent(data))


def from_lazy(
    opener: Opener,
    *,
    size: Optional[int] = None,
    id: Optional[Multihash] = None,
    algorithm: Algorithm = DEFAULT_ALGORITHM,
) -> Optional[Block]:
    """Build a lazy block from a range-capable opener.

    When both ``id`` and ``size`` are known the content is not touched.
    Otherwise the content is streamed once to compute them; a supplied size
    or id is checked against what was read.

    Returns:
        Lazy block, or None when the content is empty
    """
    if id is not None and size is not None:
        if size == 0:
            return None
        return Block(id, size, LazyContent(opener))

    if id is not None:
        algorithm = id.algorithm
    with opener(None, None) as stream:
        actual, count = digest_stream(stream, algorithm)
    if size is not None and count != size:
        raise InvalidSizeError(actual, size, count)
    if id is not None and id != actual:
        raise DigestMismatchError(id, actual)
    if count == 0:
        return None
    return Block(actual, count, LazyContent(opener))


def file_opener(path: Path) -> Opener:
    """Create an opener over a file on disk."""
    path = Path(path)

    def _open(start: Optional[int], end: Optional[int]) -> BinaryIO:
        stream = path.open("rb")
        if start:
            stream.seek(start)
        return stream

    return _open


def from_file(path: Path, algorithm: Algorithm = DEFAULT_ALGORITHM) -> Optional[Block]:
    """Build a lazy block backed by a file; its content is hashed once."""
    return from_lazy(file_opener(path), algorithm=algorithm)


# ---- Content access --------------------------------------------------------

def _open_full(block: Block) -> BinaryIO:
    content = block.content
    if isinstance(content, LiteralContent):
        return io.BytesIO(content.data)
    if isinstance(content, LazyContent):
        return content.opener(None, None)
    raise NoContentError(f"Block {block.id} has no content")


def _check_bound(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def open_block(block: Block, start: Optional[int] = None, end: Optional[int] = None) -> BinaryIO:
    """Open a stream over the block content.

    With no bounds the full content is streamed. With bounds, both must be
    given and satisfy ``0 <= start <= end <= size``. The returned stream must
    be closed by the caller.

    Raises:
        NoContentError: If the block has no content (or a declared size of 0)
        InvalidRangeError: If the bounds are incomplete or out of range
    """
    if isinstance(block.content, AbsentContent) or block.size == 0:
        raise NoContentError(f"Block {block.id} has no content to open")

    if start is None and end is None:
        return _open_full(block)

    if not (_check_bound(start) and _check_bound(end) and start <= end <= block.size):
        raise InvalidRangeError(start, end, block.size)

    content = block.content
    if isinstance(content, LiteralContent):
        return io.BytesIO(content.data[start:end])
    return _BoundedReader(content.opener(start, end), end - start)


def load_block(block: Block) -> Block:
    """Realize a lazy block into a literal one.

    Literal blocks are returned unchanged.

    Raises:
        NoContentError: If the block has no content
        InvalidSizeError: If the content read doesn't match the declared size
    """
    if isinstance(block.content, LiteralContent):
        return block
    with _open_full(block) as stream:
        data = stream.read()
    if len(data) != block.size:
        raise InvalidSizeError(block.id, block.size, len(data))
    return replace(block, content=LiteralContent(data))


def validate(block: Block) -> None:
    """Check that a block's id, size, and content are mutually consistent.

    Raises:
        NoContentError: If the block has no content
        InvalidIdentityError: If the id is not a multihash
        InvalidSizeError: If the content length differs from the declared size
        DigestMismatchError: If the content digest differs from the id
    """
    if isinstance(block.content, AbsentContent):
        raise NoContentError(f"Cannot validate block {block.id} without content")
    if not isinstance(block.id, Multihash):
        raise InvalidIdentityError(block.id)

    with _open_full(block) as stream:
        actual, count = digest_stream(stream, block.id.algorithm)
    if count != block.size:
        raise InvalidSizeError(block.id, block.size, count)
    if actual != block.id:
        raise DigestMismatchError(block.id, actual)


def write_block(block: Block, sink: BinaryIO) -> int:
    """Stream the full block content into a sink.

    Returns:
        Number of bytes written
    """
    written = 0
    with open_block(block) as stream:
        for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
            sink.write(chunk)
            written += len(chunk)
    return written


# ---- Stats metadata --------------------------------------------------------

def with_stats(block: Block, stats) -> Block:
    """Attach storage stats to a block's metadata; equality is unaffected."""
    return block.with_meta(**{STATS_KEY: stats})


def meta_stats(block: Block):
    """Return the storage stats attached to a block, if any."""
    return block.meta.get(STATS_KEY)


def preferred_copy(*blocks: Optional[Block]) -> Optional[Block]:
    """
    Choose the best of several copies of a block to read from.

    Returns the first realized block, or the first block if none are held
    in memory.
    """
    present = [b for b in blocks if b is not None]
    if not present:
        return None
    for block in present:
        if block.realized:
            return block
    return present[0]
