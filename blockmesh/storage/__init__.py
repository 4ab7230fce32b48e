"""
Storage Module: Object Store Clients
====================================

Provides:
- The ObjectStoreClient protocol the block store consumes
- In-memory implementation for development/testing
- Filesystem implementation for local persistence
- S3-compatible implementation (aioboto3), loaded lazily
- Factory function for backend selection

Example:
    >>> # Development (in-memory)
    >>> store = create_object_store()
    
    >>> # Local directory
    >>> store = create_object_store("/var/lib/blockmesh")
    
    >>> # Production (S3)
    >>> store = create_object_store(S3Config(bucket_name="blocks"))
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union, TYPE_CHECKING

from blockmesh.core.config import S3Config
from blockmesh.storage.protocols import (
    ObjectInfo,
    ListPage,
    ObjectStoreClient,
)
from blockmesh.storage.backends import (
    InMemoryObjectStore,
    StreamBody,
    ChunkedBody,
)
from blockmesh.storage.filesystem import FileSystemObjectStore

if TYPE_CHECKING:
    from blockmesh.storage.s3_store import S3ObjectStore


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def create_object_store(
    config: Union[S3Config, str, Path, None] = None,
) -> Any:
    """
    Create Object Store.
    
    Args:
        config: S3Config for an S3-compatible service, a directory
            path for the filesystem backend, or None.
    
    Returns:
        InMemoryObjectStore: If config is None (development).
        FileSystemObjectStore: If config is a path.
        S3ObjectStore: If config is an S3Config. The caller must
            ``connect()`` it (or use it as an async context manager).
    """
    if isinstance(config, S3Config):
        from blockmesh.storage.s3_store import S3ObjectStore
        return S3ObjectStore(config)
    
    if isinstance(config, (str, Path)):
        return FileSystemObjectStore(config)
    
    if config is not None:
        raise TypeError(f"Unsupported object store config: {type(config).__name__}")
    
    return InMemoryObjectStore()


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    # Protocol
    "ObjectInfo",
    "ListPage",
    "ObjectStoreClient",
    # Backends
    "InMemoryObjectStore",
    "StreamBody",
    "ChunkedBody",
    "FileSystemObjectStore",
    # Factory
    "create_object_store",
]
