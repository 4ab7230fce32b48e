"""
Content-Addressed Block Storage over Object Stores

Adapts a flat, prefix-listable object store into a block store keyed
by content identifiers:
- Sharding: reversible CID <-> object key layouts that spread blocks
  over bounded key prefixes
- Block Store: put/get/has/delete/get_all/open with a fixed error
  taxonomy and cooperative cancellation
- Object Stores: in-memory, local filesystem and S3-compatible backends

Example:
    >>> client = InMemoryObjectStore()
    >>> store = ObjectBlockstore(client, "blocks",
    ...                          BlockstoreConfig(create_if_missing=True))
    >>> await store.open()
    >>> await store.put(cid, block)
    >>> assert await store.get(cid) == block

License: MIT
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from blockmesh.core.types import (
    CID,
    Pair,
    Result,
    Ok,
    Err,
)
from blockmesh.core.errors import (
    BlockmeshError,
    BlockstoreError,
    ConstructionError,
    WriteFailed,
    DeleteFailed,
    OpenFailed,
    NotFound,
    MalformedListing,
    DecodeError,
    ObjectStoreError,
    Cancelled,
)
from blockmesh.core.cancellation import CancellationToken
from blockmesh.core.config import BlockstoreConfig, S3Config, ShardingConfig

from blockmesh.sharding import (
    MultibaseCodec,
    ShardingStrategy,
    NextToLast,
    FlatDirectory,
)

from blockmesh.storage import (
    ObjectStoreClient,
    InMemoryObjectStore,
    FileSystemObjectStore,
    create_object_store,
)

from blockmesh.blockstore import (
    BaseBlockstore,
    ObjectBlockstore,
)

__all__ = [
    # Version
    "__version__",
    # Core types
    "CID",
    "Pair",
    "Result",
    "Ok",
    "Err",
    # Errors
    "BlockmeshError",
    "BlockstoreError",
    "ConstructionError",
    "WriteFailed",
    "DeleteFailed",
    "OpenFailed",
    "NotFound",
    "MalformedListing",
    "DecodeError",
    "ObjectStoreError",
    "Cancelled",
    # Cancellation
    "CancellationToken",
    # Configuration
    "BlockstoreConfig",
    "S3Config",
    "ShardingConfig",
    # Sharding
    "MultibaseCodec",
    "ShardingStrategy",
    "NextToLast",
    "FlatDirectory",
    # Object stores
    "ObjectStoreClient",
    "InMemoryObjectStore",
    "FileSystemObjectStore",
    "create_object_store",
    # Block stores
    "BaseBlockstore",
    "ObjectBlockstore",
]
