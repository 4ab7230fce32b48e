"""
In-Memory Object Store

S3-shaped object store kept in process memory, for development and
tests. Implements the ObjectStoreClient protocol with the same
failure contract as the remote backends (404 on missing bucket/key,
idempotent delete, bounded listing pages resumed by key).

Test Hooks:
-----------
- ``page_size``: listing page bound, to exercise pagination
- ``body_shape``: "bytes", "str", "stream" or "chunks", to exercise
  body normalization in readers
- ``latency``: per-request delay, so cancellation can fire while a
  request is in flight
- ``fail_next()``: inject a status failure into the next call(s)
- ``requests``: log of (operation, bucket, key) tuples
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Deque, Dict, Iterable, List, Optional, Tuple

from blockmesh.core import constants as C
from blockmesh.core.cancellation import CancellationToken, check_cancelled, guarded
from blockmesh.core.errors import ObjectStoreError
from blockmesh.storage.protocols import ListPage, ObjectInfo

logger = logging.getLogger(__name__)

BODY_SHAPES = ("bytes", "str", "stream", "chunks")


class StreamBody:
    """Body with an async ``read()``, like the S3 client's StreamingBody."""
    
    __slots__ = ("_data", "_consumed")
    
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._consumed = False
    
    async def read(self) -> bytes:
        if self._consumed:
            return b""
        self._consumed = True
        return self._data


class ChunkedBody:
    """Body delivered as an async iterator of chunks."""
    
    __slots__ = ("_data", "_chunk_size")
    
    def __init__(self, data: bytes, chunk_size: int = 7) -> None:
        self._data = data
        self._chunk_size = chunk_size
    
    async def __aiter__(self) -> AsyncIterator[bytes]:
        for offset in range(0, len(self._data), self._chunk_size):
            yield self._data[offset:offset + self._chunk_size]


class InMemoryObjectStore:
    """
    In-memory object store.
    
    Example:
        store = InMemoryObjectStore(buckets=["blocks"])
        
        await store.put_object("blocks", "AB/BCIQ...AB.data", data)
        body = await store.get_object("blocks", "AB/BCIQ...AB.data")
    """
    
    __slots__ = (
        "_buckets",
        "_lock",
        "_page_size",
        "_body_shape",
        "_latency",
        "_faults",
        "requests",
    )
    
    def __init__(
        self,
        buckets: Iterable[str] = (),
        page_size: int = C.DEFAULT_LIST_PAGE_SIZE,
        body_shape: str = "bytes",
        latency: float = 0.0,
    ) -> None:
        if page_size <= 0:
            raise ValueError(f"page_size must be > 0, got {page_size}")
        if body_shape not in BODY_SHAPES:
            raise ValueError(f"body_shape must be one of {BODY_SHAPES}, got {body_shape!r}")
        
        self._buckets: Dict[str, Dict[str, Tuple[bytes, datetime]]] = {
            name: {} for name in buckets
        }
        self._lock = asyncio.Lock()
        self._page_size = page_size
        self._body_shape = body_shape
        self._latency = latency
        self._faults: Dict[str, Deque[int]] = defaultdict(deque)
        self.requests: List[Tuple[str, str, Optional[str]]] = []
    
    # -------------------------------------------------------------------------
    # TEST HOOKS
    # -------------------------------------------------------------------------
    
    def fail_next(
        self,
        operation: str,
        status_code: int = C.HTTP_INTERNAL_ERROR,
        times: int = 1,
    ) -> None:
        """Make the next ``times`` calls of ``operation`` fail with a status."""
        for _ in range(times):
            self._faults[operation].append(status_code)
    
    def keys(self, bucket: str) -> List[str]:
        """Sorted keys of a bucket (synchronous, for assertions)."""
        return sorted(self._buckets.get(bucket, {}))
    
    def has_bucket(self, bucket: str) -> bool:
        return bucket in self._buckets
    
    def count(self, operation: str) -> int:
        """Number of logged requests of one operation."""
        return sum(1 for op, _, _ in self.requests if op == operation)
    
    # -------------------------------------------------------------------------
    # REQUEST PLUMBING
    # -------------------------------------------------------------------------
    
    async def _begin(
        self,
        operation: str,
        bucket: str,
        key: Optional[str],
        signal: Optional[CancellationToken],
    ) -> None:
        """Cancellation check, latency, logging and fault injection."""
        check_cancelled(signal, operation)
        if self._latency > 0:
            await guarded(signal, asyncio.sleep(self._latency), operation)
        
        self.requests.append((operation, bucket, key))
        
        faults = self._faults.get(operation)
        if faults:
            status = faults.popleft()
            logger.debug(f"Injected {status} into {operation} {bucket}/{key or ''}")
            raise ObjectStoreError.request_failed(operation, status_code=status)
    
    def _bucket(self, bucket: str) -> Dict[str, Tuple[bytes, datetime]]:
        try:
            return self._buckets[bucket]
        except KeyError:
            raise ObjectStoreError.not_found(bucket) from None
    
    def _shape(self, data: bytes) -> Any:
        if self._body_shape == "str":
            return data.decode("utf-8")
        if self._body_shape == "stream":
            return StreamBody(data)
        if self._body_shape == "chunks":
            return ChunkedBody(data)
        return data
    
    # -------------------------------------------------------------------------
    # OBJECT OPERATIONS
    # -------------------------------------------------------------------------
    
    async def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> None:
        await self._begin("put_object", bucket, key, signal)
        async with self._lock:
            objects = self._bucket(bucket)
            objects[key] = (bytes(body), datetime.now(timezone.utc))
    
    async def head_object(
        self,
        bucket: str,
        key: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> ObjectInfo:
        await self._begin("head_object", bucket, key, signal)
        async with self._lock:
            objects = self._bucket(bucket)
            if key not in objects:
                raise ObjectStoreError.not_found(bucket, key)
            data, modified = objects[key]
            return ObjectInfo(
                key=key,
                size_bytes=len(data),
                etag=hashlib.md5(data).hexdigest(),
                last_modified=modified,
            )
    
    async def get_object(
        self,
        bucket: str,
        key: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> Any:
        await self._begin("get_object", bucket, key, signal)
        async with self._lock:
            objects = self._bucket(bucket)
            if key not in objects:
                raise ObjectStoreError.not_found(bucket, key)
            return self._shape(objects[key][0])
    
    async def delete_object(
        self,
        bucket: str,
        key: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> None:
        await self._begin("delete_object", bucket, key, signal)
        async with self._lock:
            self._bucket(bucket).pop(key, None)
    
    async def list_objects(
        self,
        bucket: str,
        prefix: Optional[str] = None,
        start_after: Optional[str] = None,
        max_keys: Optional[int] = None,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> ListPage:
        """
        Sorted, prefix-filtered listing of keys after ``start_after``.
        
        Complexity: O(n log n) over the bucket's keys per page.
        """
        await self._begin("list_objects", bucket, prefix, signal)
        limit = min(max_keys or self._page_size, self._page_size)
        
        async with self._lock:
            objects = self._bucket(bucket)
            keys = sorted(
                k for k in objects
                if (not prefix or k.startswith(prefix))
                and (start_after is None or k > start_after)
            )
            page = keys[:limit]
            items = [
                ObjectInfo(
                    key=k,
                    size_bytes=len(objects[k][0]),
                    last_modified=objects[k][1],
                )
                for k in page
            ]
        
        truncated = len(keys) > limit
        return ListPage(
            items=items,
            truncated=truncated,
            next_continuation=page[-1] if truncated else None,
        )
    
    # -------------------------------------------------------------------------
    # BUCKET OPERATIONS
    # -------------------------------------------------------------------------
    
    async def head_bucket(
        self,
        bucket: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> None:
        await self._begin("head_bucket", bucket, None, signal)
        if bucket not in self._buckets:
            raise ObjectStoreError.not_found(bucket)
    
    async def create_bucket(
        self,
        bucket: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> None:
        await self._begin("create_bucket", bucket, None, signal)
        async with self._lock:
            self._buckets.setdefault(bucket, {})
        logger.debug(f"Created in-memory bucket {bucket}")
