"""
Filesystem Object Store

Objects stored at: {root}/{bucket}/{key}

Each bucket is a directory; keys map to relative paths, so shard
directories of the block layout become real directories. Blocking
file I/O runs in worker threads via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from blockmesh.core import constants as C
from blockmesh.core.cancellation import CancellationToken, check_cancelled
from blockmesh.core.errors import ObjectStoreError
from blockmesh.storage.protocols import ListPage, ObjectInfo

logger = logging.getLogger(__name__)

_TMP_PREFIX = ".tmp-"


class FileSystemObjectStore:
    """
    Local filesystem object store.
    
    Writes go to a temporary sibling and are renamed into place, so
    readers never observe a partially written object.
    
    Shard directories are never removed once created, so a delete
    cannot pull a directory out from under a concurrent write.
    """
    
    __slots__ = ("_root", "_page_size")
    
    def __init__(
        self,
        root: Union[str, Path],
        page_size: int = C.DEFAULT_LIST_PAGE_SIZE,
    ) -> None:
        if page_size <= 0:
            raise ValueError(f"page_size must be > 0, got {page_size}")
        self._root = Path(root)
        self._page_size = page_size
    
    @property
    def root(self) -> Path:
        return self._root
    
    def _bucket_dir(self, bucket: str) -> Path:
        if not bucket or C.PATH_SEPARATOR in bucket or bucket in (".", ".."):
            raise ObjectStoreError.request_failed("resolve_bucket", status_code=C.HTTP_BAD_REQUEST)
        return self._root / bucket
    
    def _object_path(self, bucket: str, key: str) -> Path:
        """Resolve a key, rejecting keys that escape the bucket."""
        parts = key.split(C.PATH_SEPARATOR)
        if (
            not key
            or key.startswith(C.PATH_SEPARATOR)
            or any(p in ("", ".", "..") for p in parts)
            or parts[-1].startswith(_TMP_PREFIX)
        ):
            raise ObjectStoreError.request_failed("resolve_key", status_code=C.HTTP_BAD_REQUEST)
        return self._bucket_dir(bucket).joinpath(*parts)
    
    def _require_bucket(self, bucket: str) -> Path:
        bucket_dir = self._bucket_dir(bucket)
        if not bucket_dir.is_dir():
            raise ObjectStoreError.not_found(bucket)
        return bucket_dir
    
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
        check_cancelled(signal, "put_object")
        await asyncio.to_thread(self._write, bucket, key, bytes(body))
    
    def _write(self, bucket: str, key: str, data: bytes) -> None:
        self._require_bucket(bucket)
        path = self._object_path(bucket, key)
        tmp = path.with_name(f"{_TMP_PREFIX}{uuid.uuid4().hex}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            os.replace(tmp, path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise ObjectStoreError.request_failed("put_object", cause=e) from e
    
    async def head_object(
        self,
        bucket: str,
        key: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> ObjectInfo:
        check_cancelled(signal, "head_object")
        return await asyncio.to_thread(self._stat, bucket, key)
    
    def _stat(self, bucket: str, key: str) -> ObjectInfo:
        self._require_bucket(bucket)
        path = self._object_path(bucket, key)
        try:
            stat = path.stat()
        except FileNotFoundError:
            raise ObjectStoreError.not_found(bucket, key) from None
        if not path.is_file():
            raise ObjectStoreError.not_found(bucket, key)
        return ObjectInfo(
            key=key,
            size_bytes=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )
    
    async def get_object(
        self,
        bucket: str,
        key: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> bytes:
        check_cancelled(signal, "get_object")
        return await asyncio.to_thread(self._read, bucket, key)
    
    def _read(self, bucket: str, key: str) -> bytes:
        self._require_bucket(bucket)
        path = self._object_path(bucket, key)
        try:
            return path.read_bytes()
        except (FileNotFoundError, IsADirectoryError):
            raise ObjectStoreError.not_found(bucket, key) from None
        except OSError as e:
            raise ObjectStoreError.request_failed("get_object", cause=e) from e
    
    async def delete_object(
        self,
        bucket: str,
        key: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> None:
        check_cancelled(signal, "delete_object")
        await asyncio.to_thread(self._unlink, bucket, key)
    
    def _unlink(self, bucket: str, key: str) -> None:
        self._require_bucket(bucket)
        path = self._object_path(bucket, key)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise ObjectStoreError.request_failed("delete_object", cause=e) from e
    
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
        Page of keys in lexicographic order.
        
        Complexity: O(n log n) over the bucket's files per page.
        """
        check_cancelled(signal, "list_objects")
        limit = min(max_keys or self._page_size, self._page_size)
        keys = await asyncio.to_thread(self._scan, bucket, prefix, start_after)
        
        page = keys[:limit]
        items = [ObjectInfo(key=k) for k in page]
        truncated = len(keys) > limit
        return ListPage(
            items=items,
            truncated=truncated,
            next_continuation=page[-1] if truncated else None,
        )
    
    def _scan(
        self,
        bucket: str,
        prefix: Optional[str],
        start_after: Optional[str],
    ) -> List[str]:
        bucket_dir = self._require_bucket(bucket)
        keys: List[str] = []
        for dirpath, _, filenames in os.walk(bucket_dir):
            rel_dir = Path(dirpath).relative_to(bucket_dir).as_posix()
            for name in filenames:
                if name.startswith(_TMP_PREFIX):
                    continue
                key = name if rel_dir == "." else f"{rel_dir}/{name}"
                if prefix and not key.startswith(prefix):
                    continue
                if start_after is not None and key <= start_after:
                    continue
                keys.append(key)
        keys.sort()
        return keys
    
    # -------------------------------------------------------------------------
    # BUCKET OPERATIONS
    # -------------------------------------------------------------------------
    
    async def head_bucket(
        self,
        bucket: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> None:
        check_cancelled(signal, "head_bucket")
        await asyncio.to_thread(self._require_bucket, bucket)
    
    async def create_bucket(
        self,
        bucket: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> None:
        check_cancelled(signal, "create_bucket")
        bucket_dir = self._bucket_dir(bucket)
        await asyncio.to_thread(bucket_dir.mkdir, parents=True, exist_ok=True)
        logger.info(f"Created bucket directory {bucket_dir}")
