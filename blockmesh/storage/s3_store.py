"""
S3-Compatible Object Store
==========================

Object store client for AWS S3, MinIO, Cloudflare R2 and other
S3-compatible services, built on aioboto3.

Design Principles:
------------------
1. **Transparent Failures**: botocore ClientError propagates with its
   original type; the block store classifies it by status
2. **Retry in the Client**: transient failures are retried by
   botocore's retry handler, configured from S3Config
3. **Cancellable Requests**: every call is raced against the caller's
   cancellation token

Algorithmic Complexity:
-----------------------
| Operation     | Time | Notes                         |
|---------------|------|-------------------------------|
| put_object    | O(n) | n = object size               |
| get_object    | O(n) | body read fully into memory   |
| head_object   | O(1) | metadata only                 |
| list_objects  | O(k) | k = page size (<= 1000)       |
| delete_object | O(1) |                               |

Thread Safety:
--------------
- aioboto3 clients are safe for concurrent async operations
- Only counters are mutated after connect()
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aioboto3
from botocore.config import Config

from blockmesh.core import constants as C
from blockmesh.core.cancellation import CancellationToken, guarded
from blockmesh.core.config import S3Config
from blockmesh.core.errors import ErrorCode, ObjectStoreError
from blockmesh.core.types import Err, Ok, Result
from blockmesh.storage.protocols import ListPage, ObjectInfo

logger = logging.getLogger(__name__)


# =============================================================================
# METRICS COLLECTOR
# =============================================================================

@dataclass(slots=True)
class S3Metrics:
    """
    Request counters for S3 operations.
    
    Tracks request counts, transferred bytes and latency.
    """
    put_count: int = 0
    get_count: int = 0
    head_count: int = 0
    delete_count: int = 0
    list_count: int = 0
    
    bytes_uploaded: int = 0
    bytes_downloaded: int = 0
    
    put_latency_sum_ns: int = 0
    get_latency_sum_ns: int = 0
    
    def record_upload(self, size_bytes: int, latency_ns: int) -> None:
        self.put_count += 1
        self.bytes_uploaded += size_bytes
        self.put_latency_sum_ns += latency_ns
    
    def record_download(self, size_bytes: int, latency_ns: int) -> None:
        self.get_count += 1
        self.bytes_downloaded += size_bytes
        self.get_latency_sum_ns += latency_ns


# =============================================================================
# S3 OBJECT STORE
# =============================================================================

class S3ObjectStore:
    """
    S3-compatible object store client.
    
    Example:
        >>> store = S3ObjectStore(S3Config(bucket_name="blocks"))
        >>> async with store:
        ...     await store.put_object("blocks", "AB/BCIQ...AB.data", data)
    
    A pre-built aioboto3 client may be passed as ``client``; the
    store then uses it as-is and does not own its lifecycle.
    """
    
    __slots__ = (
        "_config",
        "_client",
        "_client_ctx",
        "_metrics",
    )
    
    def __init__(self, config: S3Config, client: Any = None) -> None:
        self._config = config
        self._client: Any = client
        self._client_ctx: Any = None
        self._metrics = S3Metrics()
    
    @property
    def config(self) -> S3Config:
        return self._config
    
    @property
    def metrics(self) -> S3Metrics:
        return self._metrics
    
    @property
    def connected(self) -> bool:
        return self._client is not None
    
    # -------------------------------------------------------------------------
    # CONNECTION MANAGEMENT
    # -------------------------------------------------------------------------
    
    async def connect(self) -> Result[None, str]:
        """
        Create the aioboto3 session and S3 client.
        
        Returns:
            Ok(None) on success (or when already connected),
            Err with message on failure.
        """
        if self._client is not None:
            return Ok(None)
        
        client_config = Config(
            max_pool_connections=self._config.max_concurrency,
            connect_timeout=self._config.connect_timeout_seconds,
            read_timeout=self._config.read_timeout_seconds,
            retries={"max_attempts": self._config.max_retries, "mode": "standard"},
        )
        
        try:
            session = aioboto3.Session()
            self._client_ctx = session.client(
                "s3",
                config=client_config,
                **self._config.get_client_kwargs(),
            )
            self._client = await self._client_ctx.__aenter__()
        except Exception as e:
            self._client_ctx = None
            logger.error(f"S3 client creation failed: {e}")
            return Err(f"S3 connection failed: {e}")
        
        logger.debug(
            f"S3 client ready (region={self._config.region}, "
            f"endpoint={self._config.endpoint_url or 'aws'})"
        )
        return Ok(None)
    
    async def close(self) -> None:
        """
        Close the client if this store created it.
        
        Safe to call multiple times.
        """
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client_ctx = None
            self._client = None
    
    async def __aenter__(self) -> S3ObjectStore:
        result = await self.connect()
        if result.is_err():
            raise ObjectStoreError(
                code=ErrorCode.OBJECT_STORE_REQUEST_FAILED,
                message=result.error,
                status_code=C.HTTP_SERVICE_UNAVAILABLE,
                context={"operation": "connect"},
            )
        return self
    
    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
    
    def _require_client(self, operation: str) -> Any:
        if self._client is None:
            raise ObjectStoreError(
                code=ErrorCode.OBJECT_STORE_REQUEST_FAILED,
                message=f"S3 store not connected (during {operation})",
                status_code=C.HTTP_SERVICE_UNAVAILABLE,
                context={"operation": operation},
            )
        return self._client
    
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
        client = self._require_client("put_object")
        start_ns = time.perf_counter_ns()
        
        await guarded(
            signal,
            client.put_object(Bucket=bucket, Key=key, Body=body),
            "put_object",
        )
        
        self._metrics.record_upload(len(body), time.perf_counter_ns() - start_ns)
    
    async def head_object(
        self,
        bucket: str,
        key: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> ObjectInfo:
        client = self._require_client("head_object")
        response = await guarded(
            signal,
            client.head_object(Bucket=bucket, Key=key),
            "head_object",
        )
        self._metrics.head_count += 1
        
        return ObjectInfo(
            key=key,
            size_bytes=response.get("ContentLength", 0),
            etag=response.get("ETag", "").strip('"') or None,
            last_modified=response.get("LastModified"),
        )
    
    async def get_object(
        self,
        bucket: str,
        key: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> bytes:
        """
        Download an object into memory.
        
        The streaming body is read and released inside the request,
        so the connection returns to the pool before this returns.
        """
        client = self._require_client("get_object")
        start_ns = time.perf_counter_ns()
        
        async def _download() -> bytes:
            response = await client.get_object(Bucket=bucket, Key=key)
            async with response["Body"] as stream:
                return await stream.read()
        
        data = await guarded(signal, _download(), "get_object")
        self._metrics.record_download(len(data), time.perf_counter_ns() - start_ns)
        return data
    
    async def delete_object(
        self,
        bucket: str,
        key: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> None:
        """S3 reports success for missing keys."""
        client = self._require_client("delete_object")
        await guarded(
            signal,
            client.delete_object(Bucket=bucket, Key=key),
            "delete_object",
        )
        self._metrics.delete_count += 1
    
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
        One ListObjectsV2 page.
        
        S3 omits ``Contents`` on an empty result; that case is reported
        as an empty page when ``KeyCount`` confirms it. Any other
        response without ``Contents`` is passed on as ``items=None``.
        """
        client = self._require_client("list_objects")
        list_kwargs: Dict[str, Any] = {
            "Bucket": bucket,
            "MaxKeys": min(max_keys or self._config.list_page_size, C.MAX_LIST_PAGE_SIZE),
        }
        if prefix:
            list_kwargs["Prefix"] = prefix
        if start_after:
            list_kwargs["StartAfter"] = start_after
        
        response = await guarded(
            signal,
            client.list_objects_v2(**list_kwargs),
            "list_objects",
        )
        self._metrics.list_count += 1
        
        truncated = bool(response.get("IsTruncated", False))
        contents = response.get("Contents")
        
        if contents is None:
            if response.get("KeyCount") == 0 and not truncated:
                return ListPage(items=[], truncated=False)
            return ListPage(items=None, truncated=truncated)
        
        items = [
            ObjectInfo(
                key=obj["Key"],
                size_bytes=obj.get("Size", 0),
                etag=obj.get("ETag", "").strip('"') or None,
                last_modified=obj.get("LastModified"),
            )
            for obj in contents
        ]
        return ListPage(
            items=items,
            truncated=truncated,
            next_continuation=response.get("NextContinuationToken"),
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
        client = self._require_client("head_bucket")
        await guarded(signal, client.head_bucket(Bucket=bucket), "head_bucket")
    
    async def create_bucket(
        self,
        bucket: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> None:
        """
        Create a bucket in the configured region.
        
        us-east-1 must not be sent as a location constraint.
        """
        client = self._require_client("create_bucket")
        create_kwargs: Dict[str, Any] = {"Bucket": bucket}
        if self._config.region and self._config.region != "us-east-1":
            create_kwargs["CreateBucketConfiguration"] = {
                "LocationConstraint": self._config.region,
            }
        await guarded(signal, client.create_bucket(**create_kwargs), "create_bucket")
        logger.info(f"Created S3 bucket {bucket} in {self._config.region}")
