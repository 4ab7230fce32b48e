"""
Object Store Protocol: The Capability the Block Store Consumes

Structural subtyping protocol (PEP 544) for object store clients. Any
backend implementing these coroutines can back a block store: a
network object store, a local filesystem, or an in-memory map.

Failure Contract:
-----------------
- Missing bucket or key: raise an error whose status classifies as
  404 via ``blockmesh.core.errors.status_code_of``
- Access denied: status 403
- delete_object on a missing key succeeds
- Fired cancellation token: raise ``Cancelled``

Every method accepts a keyword ``signal``; backends check it before
issuing a request and race in-flight requests against it where the
transport can be interrupted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import (
    Any,
    Optional,
    Protocol,
    runtime_checkable,
)

from blockmesh.core.cancellation import CancellationToken


# =============================================================================
# LISTING RECORDS
# =============================================================================
@dataclass(frozen=True, slots=True)
class ObjectInfo:
    """
    Metadata of a stored object as reported by head/list.
    
    Attributes:
        key: Object key within the bucket.
        size_bytes: Object size in bytes.
        etag: Entity tag, when the backend reports one.
        last_modified: Modification time, when reported.
    """
    key: str
    size_bytes: int = 0
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class ListPage:
    """
    One bounded page of a listing.
    
    Attributes:
        items: Objects in key order. None when the response had no
            contents field at all, which is a malformed response,
            not an empty page.
        truncated: More results exist after this page.
        next_continuation: Backend continuation token, informational.
            Pages are resumed with ``start_after`` = last item key.
    """
    items: Optional[list[ObjectInfo]]
    truncated: bool = False
    next_continuation: Optional[str] = None


# =============================================================================
# CLIENT PROTOCOL
# =============================================================================
@runtime_checkable
class ObjectStoreClient(Protocol):
    """
    Async object store capability.
    
    Implementations:
    - InMemoryObjectStore: process-local map (development, tests)
    - FileSystemObjectStore: directory tree per bucket
    - S3ObjectStore: S3-compatible service via aioboto3
    """
    
    async def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> None:
        """Write (or overwrite) an object."""
        ...
    
    async def head_object(
        self,
        bucket: str,
        key: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> ObjectInfo:
        """Object metadata; 404 when missing."""
        ...
    
    async def get_object(
        self,
        bucket: str,
        key: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> Any:
        """
        Object payload; 404 when missing.
        
        The payload may be bytes, str, or a streamable body (an
        object with an async ``read()`` or an async chunk iterator).
        """
        ...
    
    async def delete_object(
        self,
        bucket: str,
        key: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> None:
        """Remove an object; missing keys are not an error."""
        ...
    
    async def list_objects(
        self,
        bucket: str,
        prefix: Optional[str] = None,
        start_after: Optional[str] = None,
        max_keys: Optional[int] = None,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> ListPage:
        """One page of keys under ``prefix`` strictly after ``start_after``."""
        ...
    
    async def head_bucket(
        self,
        bucket: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> None:
        """Probe the bucket; 404 when it does not exist."""
        ...
    
    async def create_bucket(
        self,
        bucket: str,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> None:
        """Create the bucket."""
        ...
