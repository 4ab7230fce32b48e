"""
Unit Tests: S3 Object Store

Runs the S3 backend and the block store against an in-process stand-in
for the aioboto3 client. Failures are raised as botocore ClientError,
exactly as the real client raises them.

Tests:
    - Client lifecycle (connect/close, injected clients)
    - Request shapes (StartAfter, MaxKeys, LocationConstraint)
    - Response mapping (missing Contents, KeyCount)
    - Block store error translation over ClientError
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from botocore.config import Config
from botocore.exceptions import ClientError

from blockmesh.blockstore import ObjectBlockstore
from blockmesh.core.config import BlockstoreConfig, S3Config
from blockmesh.core.errors import (
    MalformedListing,
    NotFound,
    ObjectStoreError,
    WriteFailed,
    status_code_of,
)
from blockmesh.storage import create_object_store, s3_store
from blockmesh.storage.s3_store import S3ObjectStore
from blockmesh.tests.conftest import BUCKET, make_pairs


def client_error(status: int, code: str, operation: str) -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakeBody:
    """Streaming body: async context manager with async read()."""
    
    def __init__(self, data: bytes) -> None:
        self._data = data
        self.closed = False
    
    async def __aenter__(self) -> FakeBody:
        return self
    
    async def __aexit__(self, *exc_info: Any) -> None:
        self.closed = True
    
    async def read(self) -> bytes:
        return self._data


class FakeS3Client:
    """Keyword-argument API of the aioboto3 S3 client, kept in memory."""
    
    def __init__(self, buckets: tuple = (BUCKET,)) -> None:
        self.buckets: Dict[str, Dict[str, bytes]] = {b: {} for b in buckets}
        self.calls: List[tuple] = []
        self.forbid_heads = False
        self.list_override: Optional[Dict[str, Any]] = None
    
    def _objects(self, bucket: str, operation: str) -> Dict[str, bytes]:
        if bucket not in self.buckets:
            raise client_error(404, "NoSuchBucket", operation)
        return self.buckets[bucket]
    
    async def put_object(self, Bucket, Key, Body):
        self.calls.append(("PutObject", {"Bucket": Bucket, "Key": Key}))
        self._objects(Bucket, "PutObject")[Key] = Body
        return {"ETag": '"etag"'}
    
    async def get_object(self, Bucket, Key):
        self.calls.append(("GetObject", {"Bucket": Bucket, "Key": Key}))
        objects = self._objects(Bucket, "GetObject")
        if Key not in objects:
            raise client_error(404, "NoSuchKey", "GetObject")
        return {"Body": FakeBody(objects[Key]), "ContentLength": len(objects[Key])}
    
    async def head_object(self, Bucket, Key):
        self.calls.append(("HeadObject", {"Bucket": Bucket, "Key": Key}))
        objects = self._objects(Bucket, "HeadObject")
        if Key not in objects:
            # Without s3:ListBucket, S3 answers 403 for missing keys
            if self.forbid_heads:
                raise client_error(403, "403", "HeadObject")
            raise client_error(404, "404", "HeadObject")
        return {"ContentLength": len(objects[Key]), "ETag": '"abc"'}
    
    async def delete_object(self, Bucket, Key):
        self.calls.append(("DeleteObject", {"Bucket": Bucket, "Key": Key}))
        self._objects(Bucket, "DeleteObject").pop(Key, None)
        return {}
    
    async def list_objects_v2(self, **kwargs):
        self.calls.append(("ListObjectsV2", kwargs))
        if self.list_override is not None:
            return self.list_override
        
        objects = self._objects(kwargs["Bucket"], "ListObjectsV2")
        prefix = kwargs.get("Prefix", "")
        start_after = kwargs.get("StartAfter", "")
        keys = sorted(k for k in objects if k.startswith(prefix) and k > start_after)
        page = keys[: kwargs["MaxKeys"]]
        
        response: Dict[str, Any] = {
            "KeyCount": len(page),
            "IsTruncated": len(keys) > len(page),
            "MaxKeys": kwargs["MaxKeys"],
        }
        if page:
            response["Contents"] = [
                {"Key": k, "Size": len(objects[k]), "ETag": '"e"'} for k in page
            ]
        if response["IsTruncated"]:
            response["NextContinuationToken"] = "opaque-token"
        return response
    
    async def head_bucket(self, Bucket):
        self.calls.append(("HeadBucket", {"Bucket": Bucket}))
        if Bucket not in self.buckets:
            raise client_error(404, "404", "HeadBucket")
        return {}
    
    async def create_bucket(self, **kwargs):
        self.calls.append(("CreateBucket", kwargs))
        self.buckets.setdefault(kwargs["Bucket"], {})
        return {}
    
    def calls_of(self, operation: str) -> List[dict]:
        return [kwargs for op, kwargs in self.calls if op == operation]


@pytest.fixture
def fake() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def s3(fake) -> S3ObjectStore:
    return S3ObjectStore(S3Config(bucket_name=BUCKET, list_page_size=3), client=fake)


class TestLifecycle:
    """Tests for client creation and release."""
    
    def test_factory(self):
        store = create_object_store(S3Config(bucket_name=BUCKET))
        assert isinstance(store, S3ObjectStore)
        assert store.connected is False
    
    @pytest.mark.asyncio
    async def test_not_connected(self):
        store = S3ObjectStore(S3Config(bucket_name=BUCKET))
        with pytest.raises(ObjectStoreError) as exc_info:
            await store.get_object(BUCKET, "k")
        assert exc_info.value.status_code == 503
    
    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self, s3, fake):
        assert (await s3.connect()).is_ok()
        await s3.close()
        assert s3.connected is True
    
    @pytest.mark.asyncio
    async def test_connect_builds_client(self, monkeypatch, fake):
        created: Dict[str, Any] = {}
        
        class ClientContext:
            async def __aenter__(self):
                created["entered"] = True
                return fake
            
            async def __aexit__(self, *exc_info):
                created["exited"] = True
        
        class Session:
            def client(self, service, **kwargs):
                created["service"] = service
                created["kwargs"] = kwargs
                return ClientContext()
        
        monkeypatch.setattr(s3_store.aioboto3, "Session", Session)
        config = S3Config(
            bucket_name=BUCKET,
            region="eu-west-1",
            endpoint_url="http://localhost:9000",
            access_key_id="key",
            secret_access_key="secret",
            max_concurrency=7,
            max_retries=5,
        )
        
        async with S3ObjectStore(config) as store:
            assert store.connected
            await store.put_object(BUCKET, "k", b"v")
        
        assert created["service"] == "s3"
        kwargs = created["kwargs"]
        assert kwargs["region_name"] == "eu-west-1"
        assert kwargs["endpoint_url"] == "http://localhost:9000"
        assert kwargs["aws_access_key_id"] == "key"
        assert isinstance(kwargs["config"], Config)
        assert kwargs["config"].max_pool_connections == 7
        assert kwargs["config"].retries["max_attempts"] == 5
        assert created["exited"] is True
        assert store.connected is False
    
    @pytest.mark.asyncio
    async def test_connect_failure_is_err(self, monkeypatch):
        class Session:
            def client(self, service, **kwargs):
                raise RuntimeError("no credentials")
        
        monkeypatch.setattr(s3_store.aioboto3, "Session", Session)
        store = S3ObjectStore(S3Config(bucket_name=BUCKET))
        
        result = await store.connect()
        assert result.is_err()
        assert "no credentials" in result.error
        
        with pytest.raises(ObjectStoreError):
            async with store:
                pass


class TestRequests:
    """Tests for request and response mapping."""
    
    @pytest.mark.asyncio
    async def test_get_reads_body(self, s3, fake):
        await s3.put_object(BUCKET, "AB/k.data", b"payload")
        assert await s3.get_object(BUCKET, "AB/k.data") == b"payload"
        assert s3.metrics.bytes_downloaded == len(b"payload")
    
    @pytest.mark.asyncio
    async def test_head(self, s3):
        await s3.put_object(BUCKET, "k", b"12345")
        info = await s3.head_object(BUCKET, "k")
        assert info.size_bytes == 5
        assert info.etag == "abc"
    
    @pytest.mark.asyncio
    async def test_list_request_shape(self, s3, fake):
        await s3.list_objects(BUCKET, prefix="ns/", start_after="ns/AB/x.data")
        
        (request,) = fake.calls_of("ListObjectsV2")
        assert request == {
            "Bucket": BUCKET,
            "MaxKeys": 3,
            "Prefix": "ns/",
            "StartAfter": "ns/AB/x.data",
        }
    
    @pytest.mark.asyncio
    async def test_list_first_page_omits_marker(self, s3, fake):
        await s3.list_objects(BUCKET)
        (request,) = fake.calls_of("ListObjectsV2")
        assert "StartAfter" not in request
        assert "Prefix" not in request
    
    @pytest.mark.asyncio
    async def test_empty_listing(self, s3):
        page = await s3.list_objects(BUCKET)
        assert page.items == []
        assert page.truncated is False
    
    @pytest.mark.asyncio
    async def test_missing_contents_without_key_count(self, s3, fake):
        fake.list_override = {"IsTruncated": False}
        page = await s3.list_objects(BUCKET)
        assert page.items is None
    
    @pytest.mark.asyncio
    async def test_truncated_page(self, s3):
        for i in range(5):
            await s3.put_object(BUCKET, f"k{i}", b"x")
        
        page = await s3.list_objects(BUCKET)
        assert [i.key for i in page.items] == ["k0", "k1", "k2"]
        assert page.truncated is True
        assert page.next_continuation == "opaque-token"
    
    @pytest.mark.asyncio
    async def test_create_bucket_location(self, fake):
        store = S3ObjectStore(S3Config(bucket_name=BUCKET, region="eu-central-1"), client=fake)
        await store.create_bucket("new-bucket")
        
        (request,) = fake.calls_of("CreateBucket")
        assert request["CreateBucketConfiguration"] == {"LocationConstraint": "eu-central-1"}
    
    @pytest.mark.asyncio
    async def test_create_bucket_us_east_1(self, s3, fake):
        await s3.create_bucket("new-bucket")
        (request,) = fake.calls_of("CreateBucket")
        assert request == {"Bucket": "new-bucket"}
    
    @pytest.mark.asyncio
    async def test_client_error_propagates(self, s3):
        with pytest.raises(ClientError) as exc_info:
            await s3.get_object(BUCKET, "missing")
        assert status_code_of(exc_info.value) == 404


class TestBlockstoreOverS3:
    """Block store semantics over the S3 backend."""
    
    @pytest.mark.asyncio
    async def test_round_trip(self, s3):
        store = ObjectBlockstore(s3, BUCKET)
        pair = make_pairs(1)[0]
        
        await store.put(pair.cid, pair.block)
        assert await store.get(pair.cid) == pair.block
        assert await store.has(pair.cid) is True
        
        await store.delete(pair.cid)
        assert await store.has(pair.cid) is False
    
    @pytest.mark.asyncio
    async def test_not_found(self, s3):
        store = ObjectBlockstore(s3, BUCKET)
        with pytest.raises(NotFound) as exc_info:
            await store.get(make_pairs(1)[0].cid)
        assert isinstance(exc_info.value.cause, ClientError)
    
    @pytest.mark.asyncio
    async def test_has_without_list_permission(self, s3, fake):
        fake.forbid_heads = True
        store = ObjectBlockstore(s3, BUCKET)
        assert await store.has(make_pairs(1)[0].cid) is False
    
    @pytest.mark.asyncio
    async def test_put_into_missing_bucket(self, fake):
        s3 = S3ObjectStore(S3Config(bucket_name="absent"), client=fake)
        store = ObjectBlockstore(s3, "absent")
        
        with pytest.raises(WriteFailed) as exc_info:
            await store.put(make_pairs(1)[0].cid, b"x")
        assert isinstance(exc_info.value.cause, ClientError)
    
    @pytest.mark.asyncio
    async def test_get_all_pages_with_start_after(self, s3, fake):
        store = ObjectBlockstore(s3, BUCKET, BlockstoreConfig(prefix="ns"))
        pairs = make_pairs(8)
        for pair in pairs:
            await store.put(pair.cid, pair.block)
        keys = sorted(fake.buckets[BUCKET])
        
        entries = [p async for p in store.get_all()]
        
        assert {e.cid for e in entries} == {p.cid for p in pairs}
        markers = [r.get("StartAfter") for r in fake.calls_of("ListObjectsV2")]
        assert markers == [None, keys[2], keys[5]]
        assert all(r["Prefix"] == "ns/" for r in fake.calls_of("ListObjectsV2"))
    
    @pytest.mark.asyncio
    async def test_get_all_malformed(self, s3, fake):
        fake.list_override = {"IsTruncated": True}
        store = ObjectBlockstore(s3, BUCKET)
        
        with pytest.raises(MalformedListing):
            [p async for p in store.get_all()]
    
    @pytest.mark.asyncio
    async def test_open_creates_bucket(self, fake):
        s3 = S3ObjectStore(S3Config(bucket_name="fresh-bucket"), client=fake)
        store = ObjectBlockstore(s3, "fresh-bucket", BlockstoreConfig(create_if_missing=True))
        
        await store.open()
        assert "fresh-bucket" in fake.buckets
