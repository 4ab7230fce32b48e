"""
Unit Tests: Object-Backed Block Store

Tests:
    - Construction requirements
    - put/get/has/delete semantics and error translation
    - Body normalization
    - open() probing and bucket creation
    - Cancellation of single-key operations
"""

from __future__ import annotations

import asyncio
import io

import pytest

from blockmesh.blockstore import ObjectBlockstore
from blockmesh.blockstore.objects import to_bytes
from blockmesh.core.cancellation import CancellationToken
from blockmesh.core.config import BlockstoreConfig
from blockmesh.core.errors import (
    BlockstoreError,
    Cancelled,
    ConstructionError,
    DeleteFailed,
    ErrorCode,
    NotFound,
    ObjectStoreError,
    OpenFailed,
    WriteFailed,
)
from blockmesh.sharding import FlatDirectory, NextToLast
from blockmesh.storage import InMemoryObjectStore
from blockmesh.storage.backends import ChunkedBody, StreamBody
from blockmesh.tests.conftest import BUCKET, block_cid


class TestConstruction:
    """Tests for required collaborators."""
    
    def test_missing_client(self):
        with pytest.raises(ConstructionError):
            ObjectBlockstore(None, BUCKET)
    
    @pytest.mark.parametrize("bucket", [None, ""])
    def test_missing_bucket(self, client, bucket):
        with pytest.raises(ConstructionError) as exc_info:
            ObjectBlockstore(client, bucket)
        assert exc_info.value.code == ErrorCode.BLOCKSTORE_CONSTRUCTION_FAILED
    
    def test_defaults(self, client):
        store = ObjectBlockstore(client, BUCKET)
        assert store.sharding == NextToLast()
        assert store.config.create_if_missing is False
    
    def test_key_for_with_prefix(self, client):
        cid = block_cid(b"hello")
        store = ObjectBlockstore(client, BUCKET, BlockstoreConfig(prefix="ns"))
        assert store.key_for(cid) == f"ns/{NextToLast().encode(cid)}"
    
    def test_key_for_prefix_normalized(self, client):
        cid = block_cid(b"hello")
        store = ObjectBlockstore(client, BUCKET, BlockstoreConfig(prefix="ns//"))
        assert store.key_for(cid).startswith("ns/")
        assert not store.key_for(cid).startswith("ns//")
    
    def test_key_for_without_prefix(self, store):
        cid = block_cid(b"hello")
        assert store.key_for(cid) == NextToLast().encode(cid)


class TestPutGet:
    """Tests for put/get consistency."""
    
    @pytest.mark.asyncio
    async def test_put_returns_cid(self, store):
        cid = block_cid(b"hello")
        assert await store.put(cid, b"hello") is cid
    
    @pytest.mark.asyncio
    async def test_put_then_get(self, store, client):
        cid = block_cid(b"hello")
        await store.put(cid, b"hello")
        
        assert await store.get(cid) == b"hello"
        assert await store.has(cid) is True
        assert client.keys(BUCKET) == [store.key_for(cid)]
    
    @pytest.mark.asyncio
    async def test_overwrite(self, store):
        cid = block_cid(b"hello")
        await store.put(cid, b"first")
        await store.put(cid, b"second")
        assert await store.get(cid) == b"second"
    
    @pytest.mark.asyncio
    async def test_empty_block(self, store):
        cid = block_cid(b"")
        await store.put(cid, b"")
        assert await store.get(cid) == b""
    
    @pytest.mark.asyncio
    async def test_flat_strategy(self, client):
        store = ObjectBlockstore(client, BUCKET, BlockstoreConfig(sharding=FlatDirectory()))
        cid = block_cid(b"flat")
        await store.put(cid, b"flat")
        
        assert "/" not in client.keys(BUCKET)[0]
        assert await store.get(cid) == b"flat"
    
    @pytest.mark.asyncio
    @pytest.mark.parametrize("shape", ["bytes", "str", "stream", "chunks"])
    async def test_body_shapes(self, shape):
        """Every payload shape reads back as the same bytes."""
        client = InMemoryObjectStore(buckets=[BUCKET], body_shape=shape)
        store = ObjectBlockstore(client, BUCKET)
        data = "päyload-with-ünïcode and enough length to chunk".encode("utf-8")
        cid = block_cid(data)
        
        await store.put(cid, data)
        block = await store.get(cid)
        
        assert isinstance(block, bytes)
        assert block == data


class TestNotFound:
    """Tests for missing blocks."""
    
    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        cid = block_cid(b"never written")
        with pytest.raises(NotFound) as exc_info:
            await store.get(cid)
        
        error = exc_info.value
        assert error.code == ErrorCode.BLOCKSTORE_NOT_FOUND
        assert isinstance(error.cause, ObjectStoreError)
        assert error.__cause__ is error.cause
    
    @pytest.mark.asyncio
    async def test_has_missing(self, store):
        assert await store.has(block_cid(b"never written")) is False
    
    @pytest.mark.asyncio
    async def test_get_missing_bucket_is_not_found(self):
        store = ObjectBlockstore(InMemoryObjectStore(), "absent")
        with pytest.raises(NotFound):
            await store.get(block_cid(b"x"))


class TestErrorTranslation:
    """Tests for how object store failures surface."""
    
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [403, 500, 503])
    async def test_put_wraps_every_failure(self, store, client, status):
        cid = block_cid(b"hello")
        client.fail_next("put_object", status)
        
        with pytest.raises(WriteFailed) as exc_info:
            await store.put(cid, b"hello")
        
        error = exc_info.value
        assert error.cause.status_code == status
        assert error.context["key"] == store.key_for(cid)
    
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [403, 500])
    async def test_get_passes_other_failures_through(self, store, client, status):
        cid = block_cid(b"hello")
        await store.put(cid, b"hello")
        client.fail_next("get_object", status)
        
        with pytest.raises(ObjectStoreError) as exc_info:
            await store.get(cid)
        assert not isinstance(exc_info.value, BlockstoreError)
        assert exc_info.value.status_code == status
    
    @pytest.mark.asyncio
    async def test_has_forbidden_is_false(self, store, client):
        cid = block_cid(b"hello")
        await store.put(cid, b"hello")
        client.fail_next("head_object", 403)
        
        assert await store.has(cid) is False
        assert await store.has(cid) is True
    
    @pytest.mark.asyncio
    async def test_has_passes_other_failures_through(self, store, client):
        client.fail_next("head_object", 500)
        with pytest.raises(ObjectStoreError) as exc_info:
            await store.has(block_cid(b"hello"))
        assert exc_info.value.status_code == 500
    
    @pytest.mark.asyncio
    async def test_delete_wraps_failure(self, store, client):
        client.fail_next("delete_object", 500)
        with pytest.raises(DeleteFailed) as exc_info:
            await store.delete(block_cid(b"hello"))
        assert exc_info.value.cause.status_code == 500
    
    @pytest.mark.asyncio
    async def test_unknown_body_shape(self):
        class NumericBodyStore(InMemoryObjectStore):
            async def get_object(self, bucket, key, *, signal=None):
                return 42
        
        store = ObjectBlockstore(NumericBodyStore(buckets=[BUCKET]), BUCKET)
        cid = block_cid(b"hello")
        with pytest.raises(TypeError):
            await store.get(cid)


class TestDelete:
    """Tests for delete semantics."""
    
    @pytest.mark.asyncio
    async def test_delete_existing(self, store):
        cid = block_cid(b"hello")
        await store.put(cid, b"hello")
        await store.delete(cid)
        
        assert await store.has(cid) is False
        with pytest.raises(NotFound):
            await store.get(cid)
    
    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, store):
        cid = block_cid(b"hello")
        await store.delete(cid)
        await store.put(cid, b"hello")
        await store.delete(cid)
        await store.delete(cid)
        assert await store.has(cid) is False


class TestOpen:
    """Tests for bucket probing and creation."""
    
    @pytest.mark.asyncio
    async def test_existing_bucket(self, store, client):
        await store.open()
        assert client.count("head_bucket") == 1
        assert client.count("create_bucket") == 0
    
    @pytest.mark.asyncio
    async def test_missing_bucket_without_create(self):
        client = InMemoryObjectStore()
        store = ObjectBlockstore(client, BUCKET)
        
        with pytest.raises(OpenFailed) as exc_info:
            await store.open()
        
        assert exc_info.value.code == ErrorCode.BLOCKSTORE_OPEN_FAILED
        assert not client.has_bucket(BUCKET)
    
    @pytest.mark.asyncio
    async def test_missing_bucket_with_create(self):
        client = InMemoryObjectStore()
        store = ObjectBlockstore(client, BUCKET, BlockstoreConfig(create_if_missing=True))
        
        await store.open()
        
        assert client.has_bucket(BUCKET)
        cid = block_cid(b"after open")
        await store.put(cid, b"after open")
        assert await store.get(cid) == b"after open"
    
    @pytest.mark.asyncio
    async def test_probe_failure(self, client):
        store = ObjectBlockstore(client, BUCKET, BlockstoreConfig(create_if_missing=True))
        client.fail_next("head_bucket", 403)
        
        with pytest.raises(OpenFailed) as exc_info:
            await store.open()
        assert exc_info.value.cause.status_code == 403
        assert client.count("create_bucket") == 0
    
    @pytest.mark.asyncio
    async def test_create_failure(self):
        client = InMemoryObjectStore()
        client.fail_next("create_bucket", 500)
        store = ObjectBlockstore(client, BUCKET, BlockstoreConfig(create_if_missing=True))
        
        with pytest.raises(OpenFailed):
            await store.open()
    
    @pytest.mark.asyncio
    async def test_context_manager_opens(self):
        client = InMemoryObjectStore()
        config = BlockstoreConfig(create_if_missing=True)
        
        async with ObjectBlockstore(client, BUCKET, config) as store:
            assert client.has_bucket(BUCKET)
            await store.put(block_cid(b"x"), b"x")


class TestCancellation:
    """Tests for single-key operations with a fired token."""
    
    @pytest.mark.asyncio
    async def test_put_cancelled(self, store, client):
        token = CancellationToken()
        token.cancel("shutdown")
        
        with pytest.raises(Cancelled) as exc_info:
            await store.put(block_cid(b"x"), b"x", signal=token)
        
        assert not isinstance(exc_info.value, WriteFailed)
        assert "shutdown" in exc_info.value.message
        assert client.keys(BUCKET) == []
    
    @pytest.mark.asyncio
    async def test_has_cancelled(self, store):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(Cancelled):
            await store.has(block_cid(b"x"), signal=token)
    
    @pytest.mark.asyncio
    async def test_delete_cancelled(self, store):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(Cancelled) as exc_info:
            await store.delete(block_cid(b"x"), signal=token)
        assert not isinstance(exc_info.value, DeleteFailed)
    
    @pytest.mark.asyncio
    async def test_open_cancelled(self, store):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(Cancelled):
            await store.open(signal=token)
    
    @pytest.mark.asyncio
    async def test_cancel_in_flight(self):
        """A token fired while a request is in flight interrupts it."""
        client = InMemoryObjectStore(buckets=[BUCKET], latency=5.0)
        store = ObjectBlockstore(client, BUCKET)
        token = CancellationToken()
        
        task = asyncio.create_task(store.put(block_cid(b"x"), b"x", signal=token))
        await asyncio.sleep(0.01)
        token.cancel("too slow")
        
        with pytest.raises(Cancelled):
            await asyncio.wait_for(task, timeout=1.0)
        assert client.keys(BUCKET) == []


class TestToBytes:
    """Tests for payload normalization."""
    
    @pytest.mark.asyncio
    async def test_shapes(self):
        data = b"abcdefghijklmnop"
        assert await to_bytes(data, "k") == data
        assert await to_bytes(bytearray(data), "k") == data
        assert await to_bytes(memoryview(data), "k") == data
        assert await to_bytes(data.decode(), "k") == data
        assert await to_bytes(StreamBody(data), "k") == data
        assert await to_bytes(ChunkedBody(data, chunk_size=3), "k") == data
    
    @pytest.mark.asyncio
    async def test_sync_reader(self):
        assert await to_bytes(io.BytesIO(b"sync"), "k") == b"sync"
    
    @pytest.mark.asyncio
    async def test_none_body(self):
        with pytest.raises(BlockstoreError) as exc_info:
            await to_bytes(None, "some/key")
        assert exc_info.value.code == ErrorCode.BLOCKSTORE_EMPTY_BODY
