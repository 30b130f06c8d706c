"""Tests for the validated store operations."""

import io

import pytest

from blockstore import ops
from blockstore.block import Block, from_file, meta_stats, read_block
from blockstore.errors import IntegrityError, InvalidArgumentError
from blockstore.hashing import digest
from blockstore.listing import ListOptions
from blockstore.storage import MemoryBlockStore


class EchoStore:
    """Store whose listing returns the options it was given."""

    def list_stats(self, options):
        return iter([options])

    def stat(self, id):
        return None

    def get(self, id):
        return None

    def put(self, block):
        return block

    def delete(self, id):
        return False


class LyingStore(EchoStore):
    """Store that returns the wrong block for every id."""

    def get(self, id):
        return read_block("not what you asked for")


class TestListBlocks:
    """Test the listing wrapper."""

    def test_options_reach_the_store(self):
        """Test options reach the store."""
        (options,) = ops.list_blocks(EchoStore(), {"limit": 10, "after": "1220ab"})
        assert options == ListOptions(limit=10, after="1220ab")

    def test_keyword_options(self):
        """Test keyword options."""
        (options,) = ops.list_blocks(EchoStore(), algorithm="sha1")
        assert options.algorithm.value == "sha1"

    def test_keywords_override_mapping(self):
        """Test keywords override mapping."""
        (options,) = ops.list_blocks(EchoStore(), {"limit": 1}, limit=4)
        assert options.limit == 4

    def test_options_instance(self):
        """Test options instance."""
        (options,) = ops.list_blocks(EchoStore(), ListOptions(limit=2), after="00")
        assert options == ListOptions(limit=2, after="00")

    def test_no_options(self):
        """Test no options."""
        (options,) = ops.list_blocks(EchoStore())
        assert options == ListOptions()

    def test_invalid_options_never_reach_the_store(self):
        """Test invalid options never reach the store."""
        with pytest.raises(InvalidArgumentError, match="Unknown list option 'foo' with value 'bar'"):
            ops.list_blocks(EchoStore(), {"foo": "bar"})

    def test_lists_in_id_order(self, any_store, populate):
        """Test lists in id order."""
        blocks = populate(any_store, count=8)
        listed = [s.id for s in ops.list_blocks(any_store)]
        assert listed == sorted(blocks, key=lambda id: id.hex)


class TestSingleBlockOps:
    """Test stat/get/put/delete wrappers."""

    @pytest.mark.parametrize("bad_id", [None, "1220ab", b"\x12\x20", 42])
    def test_ids_must_be_multihashes(self, bad_id):
        """Test ids must be multihashes."""
        store = MemoryBlockStore()
        for op in (ops.stat, ops.get, ops.delete):
            with pytest.raises(InvalidArgumentError):
                op(store, bad_id)

    def test_put_requires_block(self):
        """Test put requires block."""
        with pytest.raises(InvalidArgumentError):
            ops.put(MemoryBlockStore(), b"raw bytes")

    def test_get_checks_returned_id(self):
        """Test get checks returned id."""
        with pytest.raises(IntegrityError):
            ops.get(LyingStore(), digest(b"wanted"))

    def test_missing_block(self):
        """Test missing block."""
        store = MemoryBlockStore()
        id = digest(b"nothing here")
        assert ops.stat(store, id) is None
        assert ops.get(store, id) is None
        assert ops.delete(store, id) is False

    def test_put_keeps_caller_attributes_and_meta(self):
        """Test put keeps caller attributes and meta."""
        store = MemoryBlockStore()
        block = read_block("tagged").with_attributes(label="x").with_meta(note="hi")
        stored = ops.put(store, block)
        assert stored.attributes["label"] == "x"
        assert stored.meta["note"] == "hi"
        assert meta_stats(stored) is not None

    def test_put_stat_get_delete(self):
        """Test put stat get delete."""
        store = MemoryBlockStore()
        block = read_block("round trip")
        ops.put(store, block)
        info = ops.stat(store, block.id)
        assert info.id == block.id
        assert info.size == block.size
        assert ops.get(store, block.id).deref() == b"round trip"
        assert ops.delete(store, block.id) is True
        assert ops.get(store, block.id) is None


class TestStoreSource:
    """Test storing raw sources."""

    def test_bytes(self):
        """Test bytes."""
        store = MemoryBlockStore()
        block = ops.store_source(store, b"some bytes")
        assert block.id == digest(b"some bytes")
        assert ops.get(store, block.id) is not None

    def test_stream(self):
        """Test stream."""
        store = MemoryBlockStore()
        block = ops.store_source(store, io.BytesIO(b"streamed"))
        assert block.size == 8

    def test_path_is_stored_lazily(self, tmp_path):
        """Test path is stored lazily."""
        path = tmp_path / "data.bin"
        path.write_bytes(b"from a file")
        store = MemoryBlockStore()
        block = ops.store_source(store, path)
        assert block == from_file(path)
        assert ops.get(store, block.id).deref() == b"from a file"

    def test_empty_source_stores_nothing(self, tmp_path):
        """Test empty source stores nothing."""
        store = MemoryBlockStore()
        assert ops.store_source(store, b"") is None
        empty = tmp_path / "empty"
        empty.write_bytes(b"")
        assert ops.store_source(store, empty) is None
        assert len(store) == 0

    def test_returns_block(self):
        """Test returns block."""
        assert isinstance(ops.store_source(MemoryBlockStore(), "text"), Block)
