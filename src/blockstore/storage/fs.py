"""Filesystem block storage implementation.

Blocks are stored one file per block, sharded by the first eight hex
characters of the multihash:

    <root>/blocks/<hex[:8]>/<hex[8:]>

Key Features:
- Atomic promotion: content is written to a temp file, fsynced, verified
  against the block id, made read-only, then renamed into place
- Cross-platform per-block locking via portalocker
- Lazy reads: fetched blocks stream from disk on demand
- Listings walk shard directories in sorted order without loading the tree

Technical Considerations:
- Lock files persist next to block files to avoid inode coordination issues
- Directory fsync is best-effort and silently skipped where unsupported
"""

import contextlib
import logging
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

import portalocker

from ..block import Block, file_opener, from_lazy, open_block, with_stats
from ..errors import DigestMismatchError, InvalidArgumentError, InvalidSizeError
from ..hashing import CHUNK_SIZE, new_hasher
from ..listing import ListOptions, select_stats
from ..multihash import Multihash
from ..utils import is_hex
from .base import BlockStat

logger = logging.getLogger(__name__)

LOCK_TIMEOUT = 300
_SHARD = re.compile(r"^[0-9a-f]{8}$")

# ---- Platform-specific helpers ---------------------------------------------

def _fsync_dir(path: Path) -> None:
    """Fsync a directory to ensure directory entry updates are durable.

    This is a best-effort operation that may not work on all platforms/filesystems.
    """
    try:
        flags = os.O_RDONLY
        if hasattr(os, "O_DIRECTORY"):
            flags |= os.O_DIRECTORY

        fd = os.open(str(path), flags)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError:
        logger.debug("Directory fsync not supported for %s", path)


# ---- FileBlockStore implementation -----------------------------------------

class FileBlockStore:
    """Block store keeping one read-only file per block under a root directory.

    Attributes:
        root: Store root directory
        blocks_dir: Directory holding the block shards (root/blocks)

    Thread Safety:
        Writes take a per-block file lock and are safe for concurrent access
        from threads and processes.
    """

    def __init__(self, root: Path):
        """Initialize the store, creating directories as needed.

        Args:
            root: Store root directory
        """
        self.root = Path(root)
        self.blocks_dir = self.root / "blocks"
        self.blocks_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, id: Multihash) -> Path:
        """Get the file path for a block id."""
        hex_id = id.hex
        return self.blocks_dir / hex_id[:8] / hex_id[8:]

    def _stat_path(self, id: Multihash, path: Path) -> Optional[BlockStat]:
        try:
            st = path.stat()
        except FileNotFoundError:
            return None
        return BlockStat(
            id=id,
            size=st.st_size,
            stored_at=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            source=path.absolute().as_uri(),
        )

    def _walk(self, after: Optional[str]) -> Iterator[BlockStat]:
        shards = sorted(p.name for p in self.blocks_dir.iterdir() if _SHARD.fullmatch(p.name))
        for shard in shards:
            if after is not None and shard < after[:8]:
                continue
            for name in sorted(os.listdir(self.blocks_dir / shard)):
                hex_id = shard + name
                if not is_hex(hex_id):
                    # temp and lock files
                    continue
                try:
                    id = Multihash.from_hex(hex_id)
                except InvalidArgumentError:
                    logger.debug("Skipping unrecognized file in block store: %s/%s", shard, name)
                    continue
                stat = self._stat_path(id, self.blocks_dir / shard / name)
                if stat is not None:
                    yield stat

    def list_stats(self, options: ListOptions) -> Iterator[BlockStat]:
        return select_stats(options, self._walk(options.after))

    def stat(self, id: Multihash) -> Optional[BlockStat]:
        return self._stat_path(id, self.path_for(id))

    def get(self, id: Multihash) -> Optional[Block]:
        path = self.path_for(id)
        stat = self._stat_path(id, path)
        if stat is None:
            return None
        block = from_lazy(file_opener(path), id=id, size=stat.size)
        if block is None:
            return None
        return with_stats(block, stat)

    def put(self, block: Block) -> Block:
        """Write a block to disk atomically.

        The content is hashed while it is written; a digest or size mismatch
        aborts the write and leaves nothing behind.

        Raises:
            DigestMismatchError: If the content doesn't hash to the block id
            InvalidSizeError: If the content length doesn't match the block size
        """
        dst = self.path_for(block.id)

        # Fast path: already stored
        if dst.exists():
            return self.get(block.id)

        dst.parent.mkdir(parents=True, exist_ok=True)
        lock_path = dst.with_suffix(".lock")

        with portalocker.Lock(str(lock_path), "w", timeout=LOCK_TIMEOUT):
            # Re-check after acquiring lock
            if dst.exists():
                return self.get(block.id)

            with tempfile.NamedTemporaryFile(
                prefix=".block-",
                dir=str(dst.parent),
                delete=False
            ) as tmp:
                tmppath = Path(tmp.name)

            try:
                hasher = new_hasher(block.id.algorithm)
                written = 0
                with open_block(block) as src, tmppath.open("wb") as out:
                    for chunk in iter(lambda: src.read(CHUNK_SIZE), b""):
                        hasher.update(chunk)
                        out.write(chunk)
                        written += len(chunk)
                    out.flush()
                    os.fsync(out.fileno())

                if written != block.size:
                    raise InvalidSizeError(block.id, block.size, written)
                actual = Multihash(block.id.algorithm, hasher.digest())
                if actual != block.id:
                    raise DigestMismatchError(block.id, actual)

                os.chmod(tmppath, 0o444)
                os.replace(str(tmppath), str(dst))
                _fsync_dir(dst.parent)
                logger.debug("Block stored: %s", dst)

            except Exception:
                with contextlib.suppress(OSError):
                    tmppath.unlink()
                raise

        return self.get(block.id)

    def delete(self, id: Multihash) -> bool:
        path = self.path_for(id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.debug("Block deleted: %s", path)
        return True
