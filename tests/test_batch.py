"""Tests for batch operations and their fallback paths."""

import pytest

from blockstore import batch
from blockstore.block import read_block
from blockstore.errors import InvalidArgumentError
from blockstore.hashing import digest
from blockstore.storage import BatchingStore, MemoryBlockStore


class RecordingBatchStore(MemoryBlockStore):
    """Memory store with batch methods that record their calls."""

    def __init__(self):
        super().__init__()
        self.calls = []

    def get_batch(self, ids):
        self.calls.append(("get_batch", ids))
        return ["optimized get"]

    def put_batch(self, blocks):
        self.calls.append(("put_batch", blocks))
        return ["optimized put"]

    def delete_batch(self, ids):
        self.calls.append(("delete_batch", ids))
        return {"optimized delete"}


@pytest.fixture
def blocks():
    return [read_block(text) for text in ("foo", "bar", "baz")]


class TestCapability:
    """Test batch capability detection."""

    def test_plain_store_has_no_batch_capability(self):
        """Test plain store has no batch capability."""
        assert not isinstance(MemoryBlockStore(), BatchingStore)

    def test_batch_store_is_detected(self):
        """Test batch store is detected."""
        assert isinstance(RecordingBatchStore(), BatchingStore)


class TestOptimizedPath:
    """Batch-capable stores get the whole batch and their result is returned verbatim."""

    def test_get(self, blocks):
        """Test get."""
        store = RecordingBatchStore()
        ids = [b.id for b in blocks]
        assert batch.get_batch(store, ids) == ["optimized get"]
        assert store.calls == [("get_batch", ids)]

    def test_put(self, blocks):
        """Test put."""
        store = RecordingBatchStore()
        assert batch.put_batch(store, blocks) == ["optimized put"]
        assert store.calls == [("put_batch", blocks)]

    def test_delete(self, blocks):
        """Test delete."""
        store = RecordingBatchStore()
        assert batch.delete_batch(store, [b.id for b in blocks]) == {"optimized delete"}


class TestFallbackPath:
    """Stores without batch support fold the single-item operations."""

    def test_put(self, blocks):
        """Test put."""
        store = MemoryBlockStore()
        stored = batch.put_batch(store, blocks)
        assert stored == blocks
        assert len(store) == 3

    def test_get_keeps_order_and_omits_missing(self, blocks):
        """Test get keeps order and omits missing."""
        store = MemoryBlockStore()
        batch.put_batch(store, blocks[:2])
        missing = digest(b"missing")
        ids = [blocks[1].id, missing, blocks[0].id, blocks[2].id]
        assert batch.get_batch(store, ids) == [blocks[1], blocks[0]]

    def test_delete_returns_removed_ids(self, blocks):
        """Test delete returns removed ids."""
        store = MemoryBlockStore()
        batch.put_batch(store, blocks[:2])
        removed = batch.delete_batch(store, [b.id for b in blocks])
        assert removed == {blocks[0].id, blocks[1].id}
        assert len(store) == 0

    def test_accepts_any_iterable(self, blocks):
        """Test accepts any iterable."""
        store = MemoryBlockStore()
        batch.put_batch(store, (b for b in blocks))
        assert len(batch.get_batch(store, {b.id for b in blocks})) == 3

    def test_empty_batches(self):
        """Test empty batches."""
        store = MemoryBlockStore()
        assert batch.get_batch(store, []) == []
        assert batch.put_batch(store, []) == []
        assert batch.delete_batch(store, []) == set()


class TestValidation:
    """Malformed batches are rejected before touching the store."""

    @pytest.mark.parametrize("value", [None, "1220ab", b"abc", {"a": 1}, 42])
    def test_not_a_collection(self, value):
        """Test not a collection."""
        store = RecordingBatchStore()
        for op in (batch.get_batch, batch.put_batch, batch.delete_batch):
            with pytest.raises(InvalidArgumentError):
                op(store, value)
        assert store.calls == []

    def test_bad_ids(self, blocks):
        """Test bad ids."""
        store = RecordingBatchStore()
        with pytest.raises(InvalidArgumentError, match="non-multihash"):
            batch.get_batch(store, [blocks[0].id, "not an id"])
        with pytest.raises(InvalidArgumentError, match="non-multihash"):
            batch.delete_batch(store, [None])
        assert store.calls == []

    def test_bad_blocks(self, blocks):
        """Test bad blocks."""
        store = RecordingBatchStore()
        with pytest.raises(InvalidArgumentError, match="non-block"):
            batch.put_batch(store, [blocks[0], b"raw"])
        assert store.calls == []
