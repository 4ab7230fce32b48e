"""
Core module: Type definitions, error hierarchy, cancellation and
configuration.
"""

from blockmesh.core.types import (
    CID,
    Result,
    Ok,
    Err,
    Timestamp,
    Pair,
)
from blockmesh.core.errors import (
    ErrorCode,
    BlockmeshError,
    BlockstoreError,
    ConstructionError,
    WriteFailed,
    DeleteFailed,
    OpenFailed,
    NotFound,
    MalformedListing,
    ShardingError,
    DecodeError,
    ObjectStoreError,
    Cancelled,
    status_code_of,
)
from blockmesh.core.cancellation import CancellationToken
from blockmesh.core.config import BlockstoreConfig, S3Config, ShardingConfig

__all__ = [
    "CID",
    "Result",
    "Ok",
    "Err",
    "Timestamp",
    "Pair",
    "ErrorCode",
    "BlockmeshError",
    "BlockstoreError",
    "ConstructionError",
    "WriteFailed",
    "DeleteFailed",
    "OpenFailed",
    "NotFound",
    "MalformedListing",
    "ShardingError",
    "DecodeError",
    "ObjectStoreError",
    "Cancelled",
    "status_code_of",
    "CancellationToken",
    "BlockstoreConfig",
    "S3Config",
    "ShardingConfig",
]
