"""
Object-Backed Block Store
=========================

Content-addressed block store over a flat, prefix-listable object
store. Each block lives at ``{prefix}{sharding.encode(cid)}`` in one
bucket; nothing is cached locally, every call consults the store.

Error Translation:
------------------
| Operation | Missing (404)      | Forbidden (403) | Other failure        |
|-----------|--------------------|-----------------|----------------------|
| put       | WriteFailed        | WriteFailed     | WriteFailed          |
| get       | NotFound           | passthrough     | passthrough          |
| has       | False              | False           | passthrough          |
| delete    | DeleteFailed       | DeleteFailed    | DeleteFailed         |
| open      | create / OpenFailed| OpenFailed      | OpenFailed           |
| get_all   | passthrough        | passthrough     | passthrough          |

``Cancelled`` is never rewrapped. ``has`` reporting False on 403
follows stores whose access policy omits list permission: a probe
for a missing key is then denied rather than reported missing.

Enumeration:
------------
``get_all`` walks the listing page by page, resuming each page after
the last key of the previous one. Each listed key is decoded back to
its identifier and read. Cancellation is checked around every listing
request and ends the walk without error.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

from blockmesh.blockstore.base import BaseBlockstore
from blockmesh.core.cancellation import CancellationToken
from blockmesh.core.config import BlockstoreConfig
from blockmesh.core.errors import (
    BlockstoreError,
    Cancelled,
    is_forbidden,
    is_not_found,
)
from blockmesh.core.types import CID, Pair
from blockmesh.sharding.strategies import ShardingStrategy
from blockmesh.storage.protocols import ObjectStoreClient

logger = logging.getLogger(__name__)


# =============================================================================
# BODY NORMALIZATION
# =============================================================================
async def to_bytes(body: Any, key: str) -> bytes:
    """
    Collapse a response payload into bytes.
    
    Accepts bytes-like values, text (UTF-8), objects with an async or
    sync ``read()``, and async iterators of chunks.
    
    Raises:
        BlockstoreError: If the payload is None.
        TypeError: If the payload has no recognized shape.
    """
    if body is None:
        raise BlockstoreError.empty_body(key)
    
    if isinstance(body, bytes):
        return body
    if isinstance(body, (bytearray, memoryview)):
        return bytes(body)
    if isinstance(body, str):
        return body.encode("utf-8")
    
    read = getattr(body, "read", None)
    if callable(read):
        data = read()
        if hasattr(data, "__await__"):
            data = await data
        return await to_bytes(data, key)
    
    if hasattr(body, "__aiter__"):
        buffer = bytearray()
        async for chunk in body:
            buffer.extend(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)
        return bytes(buffer)
    
    raise TypeError(f"Unsupported body type for '{key}': {type(body).__name__}")


# =============================================================================
# BLOCK STORE
# =============================================================================
class ObjectBlockstore(BaseBlockstore):
    """
    Block store backed by an object store bucket.
    
    Example:
        >>> client = create_object_store(S3Config(bucket_name="blocks"))
        >>> async with client:
        ...     store = ObjectBlockstore(client, "blocks",
        ...                              BlockstoreConfig(create_if_missing=True))
        ...     await store.open()
        ...     await store.put(cid, block)
        ...     async for pair in store.get_all():
        ...         ...
    
    The client is shared, not owned: ``close()`` leaves it open.
    """
    
    __slots__ = (
        "_client",
        "_bucket",
        "_config",
        "_sharding",
        "_prefix",
    )
    
    def __init__(
        self,
        client: Optional[ObjectStoreClient],
        bucket: Optional[str],
        config: Optional[BlockstoreConfig] = None,
    ) -> None:
        if client is None:
            raise BlockstoreError.construction(
                "An object store client must be supplied"
            )
        if not bucket:
            raise BlockstoreError.construction("A bucket name must be supplied")
        
        self._client = client
        self._bucket = bucket
        self._config = config or BlockstoreConfig()
        self._sharding = self._config.resolve_sharding()
        self._prefix = self._config.key_prefix
    
    @property
    def bucket(self) -> str:
        return self._bucket
    
    @property
    def config(self) -> BlockstoreConfig:
        return self._config
    
    @property
    def sharding(self) -> ShardingStrategy:
        return self._sharding
    
    def key_for(self, cid: CID) -> str:
        """Full object key of a block."""
        return f"{self._prefix}{self._sharding.encode(cid)}"
    
    # -------------------------------------------------------------------------
    # CORE OPERATIONS
    # -------------------------------------------------------------------------
    
    async def put(
        self,
        cid: CID,
        block: bytes,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> CID:
        """
        Write a block.
        
        Raises:
            WriteFailed: On any object store failure.
            Cancelled: If the token fired.
        """
        key = self.key_for(cid)
        logger.debug(f"put {self._bucket}/{key} ({len(block)} bytes)")
        try:
            await self._client.put_object(self._bucket, key, block, signal=signal)
        except Cancelled:
            raise
        except Exception as e:
            raise BlockstoreError.write_failed(key, e) from e
        return cid
    
    async def get(
        self,
        cid: CID,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> bytes:
        """
        Read a block.
        
        Raises:
            NotFound: If no block is stored under the identifier.
            Exception: Any other object store failure, unchanged.
        """
        key = self.key_for(cid)
        logger.debug(f"get {self._bucket}/{key}")
        try:
            body = await self._client.get_object(self._bucket, key, signal=signal)
        except Exception as e:
            if is_not_found(e):
                raise BlockstoreError.not_found(key, e) from e
            raise
        return await to_bytes(body, key)
    
    async def has(
        self,
        cid: CID,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> bool:
        key = self.key_for(cid)
        logger.debug(f"has {self._bucket}/{key}")
        try:
            await self._client.head_object(self._bucket, key, signal=signal)
        except Exception as e:
            if is_not_found(e) or is_forbidden(e):
                return False
            raise
        return True
    
    async def delete(
        self,
        cid: CID,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> None:
        """
        Remove a block. Backends treat a missing key as success.
        
        Raises:
            DeleteFailed: On any object store failure.
            Cancelled: If the token fired.
        """
        key = self.key_for(cid)
        logger.debug(f"delete {self._bucket}/{key}")
        try:
            await self._client.delete_object(self._bucket, key, signal=signal)
        except Cancelled:
            raise
        except Exception as e:
            raise BlockstoreError.delete_failed(key, e) from e
    
    async def open(self, *, signal: Optional[CancellationToken] = None) -> None:
        """
        Verify the bucket is reachable, creating it when configured.
        
        Raises:
            OpenFailed: If the bucket is missing (and not created),
                unreachable, or creation failed.
            Cancelled: If the token fired.
        """
        try:
            await self._client.head_bucket(self._bucket, signal=signal)
            return
        except Cancelled:
            raise
        except Exception as e:
            if not is_not_found(e):
                logger.warning(f"Bucket probe failed for {self._bucket}: {e}")
                raise BlockstoreError.open_failed(self._bucket, "probe failed", e) from e
            if not self._config.create_if_missing:
                logger.warning(f"Bucket {self._bucket} does not exist")
                raise BlockstoreError.open_failed(self._bucket, "bucket does not exist", e) from e
        
        try:
            await self._client.create_bucket(self._bucket, signal=signal)
        except Cancelled:
            raise
        except Exception as e:
            logger.warning(f"Bucket creation failed for {self._bucket}: {e}")
            raise BlockstoreError.open_failed(self._bucket, "bucket creation failed", e) from e
        logger.info(f"Created bucket {self._bucket}")
    
    # -------------------------------------------------------------------------
    # ENUMERATION
    # -------------------------------------------------------------------------
    
    async def get_all(
        self,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> AsyncIterator[Pair]:
        """
        Yield every stored block as a Pair.
        
        Lazy: one listing page is held at a time, and each block is
        read just before it is yielded.
        
        Raises:
            MalformedListing: If a page has no contents field, or is
                truncated without items to resume after.
            DecodeError: If a listed key is not a shard path.
            NotFound: If a listed block vanished before it was read.
        """
        prefix = self._prefix or None
        start_after: Optional[str] = None
        pages = 0
        count = 0
        
        try:
            while True:
                if signal is not None and signal.cancelled:
                    break
                
                page = await self._client.list_objects(
                    self._bucket,
                    prefix=prefix,
                    start_after=start_after,
                    signal=signal,
                )
                pages += 1
                
                if signal is not None and signal.cancelled:
                    break
                if page.items is None:
                    raise BlockstoreError.malformed_listing(
                        "response has no contents", prefix
                    )
                
                for item in page.items:
                    cid = self._sharding.decode(item.key)
                    block = await self.get(cid, signal=signal)
                    count += 1
                    yield Pair(cid=cid, block=block)
                
                if not page.truncated:
                    break
                if not page.items:
                    raise BlockstoreError.malformed_listing(
                        "truncated page without items", prefix
                    )
                start_after = page.items[-1].key
        except Cancelled:
            logger.debug(f"get_all on {self._bucket} cancelled after {count} blocks")
            return
        
        logger.debug(f"get_all on {self._bucket}: {count} blocks in {pages} pages")
    
    def __repr__(self) -> str:
        return (
            f"ObjectBlockstore(bucket={self._bucket!r}, "
            f"prefix={self._prefix!r}, sharding={self._sharding!r})"
        )
