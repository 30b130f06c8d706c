"""Test FileBlockStore implementation."""

import io
import os
import stat
import sys

import pytest

from blockstore import ops
from blockstore.block import LazyContent, from_lazy, meta_stats, read_block
from blockstore.errors import DigestMismatchError, InvalidSizeError
from blockstore.hashing import digest
from blockstore.storage import FileBlockStore


@pytest.fixture
def store(tmp_path):
    """Create FileBlockStore instance with temp directory."""
    return FileBlockStore(tmp_path / "blocks-root")


class TestLayout:
    """Test on-disk layout."""

    def test_init_creates_directories(self, tmp_path):
        """Test init creates directories."""
        root = tmp_path / "fresh"
        FileBlockStore(root)
        assert (root / "blocks").is_dir()

    def test_path_for_sharding(self, store):
        """Test path for sharding."""
        id = digest(b"shard me")
        path = store.path_for(id)
        assert path == store.blocks_dir / id.hex[:8] / id.hex[8:]

    def test_put_writes_file(self, store):
        """Test put writes file."""
        block = read_block("on disk")
        store.put(block)
        path = store.path_for(block.id)
        assert path.read_bytes() == b"on disk"

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_stored_files_are_read_only(self, store):
        """Test stored files are read only."""
        block = read_block("frozen")
        store.put(block)
        mode = stat.S_IMODE(os.stat(store.path_for(block.id)).st_mode)
        assert mode == 0o444

    def test_reopening_sees_existing_blocks(self, tmp_path):
        """Test reopening sees existing blocks."""
        root = tmp_path / "persist"
        block = read_block("persistent")
        FileBlockStore(root).put(block)
        reopened = FileBlockStore(root)
        assert [s.id for s in ops.list_blocks(reopened)] == [block.id]


class TestIntegrity:
    """Test write-time verification."""

    def test_digest_mismatch_leaves_nothing(self, store):
        """Test digest mismatch leaves nothing."""
        lie = from_lazy(lambda s, e: io.BytesIO(b"actual"), id=digest(b"claimed"), size=6)
        with pytest.raises(DigestMismatchError):
            store.put(lie)
        assert not store.path_for(lie.id).exists()
        leftovers = [p.name for p in store.path_for(lie.id).parent.iterdir()]
        assert not any(name.startswith(".block-") for name in leftovers)

    def test_size_mismatch_leaves_nothing(self, store):
        """Test size mismatch leaves nothing."""
        lie = from_lazy(lambda s, e: io.BytesIO(b"actual"), id=digest(b"actual"), size=60)
        with pytest.raises(InvalidSizeError):
            store.put(lie)
        assert not store.path_for(lie.id).exists()


class TestReading:
    """Test lazy reads and stats."""

    def test_get_is_lazy(self, store):
        """Test get is lazy."""
        block = read_block("read me later")
        store.put(block)
        fetched = store.get(block.id)
        assert isinstance(fetched.content, LazyContent)
        assert not fetched.realized

    def test_stats_name_the_file(self, store):
        """Test stats name the file."""
        block = read_block("where am i")
        store.put(block)
        info = store.stat(block.id)
        assert info.source == store.path_for(block.id).absolute().as_uri()
        assert info.stored_at.tzinfo is not None
        assert meta_stats(store.get(block.id)) == info

    def test_listing_skips_foreign_files(self, store):
        """Test listing skips foreign files."""
        block = read_block("real block")
        store.put(block)
        shard = store.path_for(block.id).parent
        (shard / "notes.txt").write_text("ignore me")
        (store.blocks_dir / "not-a-shard").mkdir()
        (store.blocks_dir / "README").write_text("ignore me too")
        # Lock files from put() stay next to the blocks
        assert any(p.suffix == ".lock" for p in shard.iterdir())
        assert [s.id for s in ops.list_blocks(store)] == [block.id]

    def test_listing_after_skips_earlier_shards(self, store, populate):
        """Test listing after skips earlier shards."""
        blocks = populate(store, count=10)
        ordered = sorted(blocks, key=lambda id: id.hex)
        listed = [s.id for s in ops.list_blocks(store, after=ordered[6].hex)]
        assert listed == ordered[7:]

    def test_delete_missing(self, store):
        """Test delete missing."""
        assert store.delete(digest(b"never stored")) is False
