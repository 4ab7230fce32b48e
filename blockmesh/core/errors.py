"""
Error Hierarchy for the Block Mesh

Callers program against this taxonomy, never against transport
status codes:

- NotFound: a read addressed a block that is not stored
- WriteFailed / DeleteFailed / OpenFailed: the storage subsystem
  failed; the underlying failure is kept as ``cause``
- DecodeError: an object key is not a valid shard path
- Cancelled: the caller's cancellation token fired
- anything else: an unclassified failure from the object store,
  propagated with its original type

Each error type includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause for root cause analysis
- Timestamp for correlation with request logs

Usage:
    try:
        block = await store.get(cid)
    except NotFound:
        block = await fetch_from_network(cid)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from blockmesh.core import constants as C
from blockmesh.core.types import Timestamp


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.
    
    Codes are grouped by subsystem:
    - 1xxx: Block store errors
    - 2xxx: Sharding errors
    - 3xxx: Object store errors
    - 4xxx: Cancellation
    """
    
    # Block store errors (1xxx)
    BLOCKSTORE_CONSTRUCTION_FAILED = 1001
    BLOCKSTORE_WRITE_FAILED = 1002
    BLOCKSTORE_DELETE_FAILED = 1003
    BLOCKSTORE_OPEN_FAILED = 1004
    BLOCKSTORE_NOT_FOUND = 1005
    BLOCKSTORE_MALFORMED_LISTING = 1006
    BLOCKSTORE_EMPTY_BODY = 1007
    
    # Sharding errors (2xxx)
    SHARDING_INVALID_PATH = 2001
    SHARDING_INVALID_TOKEN = 2002
    SHARDING_INVALID_MULTIHASH = 2003
    
    # Object store errors (3xxx)
    OBJECT_STORE_REQUEST_FAILED = 3001
    OBJECT_STORE_NOT_FOUND = 3002
    OBJECT_STORE_FORBIDDEN = 3003
    
    # Cancellation (4xxx)
    OPERATION_CANCELLED = 4001


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass(eq=False)
class BlockmeshError(Exception):
    """
    Base class for all block mesh errors.
    
    Provides common infrastructure for error handling:
    - Unique error ID for tracing a failure across log lines
    - Error code for programmatic handling
    - Timestamp for correlation
    - Cause for root cause analysis
    """
    
    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)
    
    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.cause is not None:
            self.__cause__ = self.cause
    
    def to_dict(self) -> dict[str, Any]:
        """
        Serialize error to dictionary for structured logs.
        
        The cause is reported by type and message only.
        """
        data: dict[str, Any] = {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_nanos": self.timestamp.nanos,
            "context": self.context,
        }
        if self.cause is not None:
            data["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return data
    
    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"
    
    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# BLOCK STORE ERRORS
# =============================================================================
@dataclass(eq=False)
class BlockstoreError(BlockmeshError):
    """
    Errors reported by block store operations.
    
    The classmethod constructors return the dedicated subclass for
    each kind so callers can branch with ``except NotFound`` etc.
    """
    
    @classmethod
    def construction(cls, reason: str) -> ConstructionError:
        """Block store was built without a client or bucket."""
        return ConstructionError(
            code=ErrorCode.BLOCKSTORE_CONSTRUCTION_FAILED,
            message=reason,
        )
    
    @classmethod
    def write_failed(
        cls,
        key: str,
        cause: Optional[BaseException] = None,
    ) -> WriteFailed:
        """Object store rejected a block write."""
        return WriteFailed(
            code=ErrorCode.BLOCKSTORE_WRITE_FAILED,
            message=f"Failed to write block at '{key}': {cause}",
            cause=cause,
            context={"key": key},
        )
    
    @classmethod
    def delete_failed(
        cls,
        key: str,
        cause: Optional[BaseException] = None,
    ) -> DeleteFailed:
        """Object store rejected a block delete."""
        return DeleteFailed(
            code=ErrorCode.BLOCKSTORE_DELETE_FAILED,
            message=f"Failed to delete block at '{key}': {cause}",
            cause=cause,
            context={"key": key},
        )
    
    @classmethod
    def open_failed(
        cls,
        bucket: str,
        reason: str,
        cause: Optional[BaseException] = None,
    ) -> OpenFailed:
        """Bucket is missing or unreachable."""
        return OpenFailed(
            code=ErrorCode.BLOCKSTORE_OPEN_FAILED,
            message=f"Failed to open bucket '{bucket}': {reason}",
            cause=cause,
            context={"bucket": bucket},
        )
    
    @classmethod
    def not_found(
        cls,
        key: str,
        cause: Optional[BaseException] = None,
    ) -> NotFound:
        """No block is stored at the key."""
        return NotFound(
            code=ErrorCode.BLOCKSTORE_NOT_FOUND,
            message=f"Block not found at '{key}'",
            cause=cause,
            context={"key": key},
        )
    
    @classmethod
    def malformed_listing(
        cls,
        reason: str,
        prefix: Optional[str] = None,
    ) -> MalformedListing:
        """Listing response violates the paging protocol."""
        return MalformedListing(
            code=ErrorCode.BLOCKSTORE_MALFORMED_LISTING,
            message=f"Malformed listing response: {reason}",
            context={"prefix": prefix},
        )
    
    @classmethod
    def empty_body(cls, key: str) -> BlockstoreError:
        """Read succeeded but carried no payload."""
        return cls(
            code=ErrorCode.BLOCKSTORE_EMPTY_BODY,
            message=f"Response for '{key}' had no body",
            context={"key": key},
        )


class ConstructionError(BlockstoreError):
    """Missing client or bucket name."""


class WriteFailed(BlockstoreError):
    """Write subsystem failure, wraps the underlying error."""


class DeleteFailed(BlockstoreError):
    """Delete subsystem failure, wraps the underlying error."""


class OpenFailed(BlockstoreError):
    """Bucket probe or creation failure."""


class NotFound(BlockstoreError):
    """Read of a block that is not stored."""


class MalformedListing(BlockstoreError):
    """Listing page without contents, or truncated without items."""


# =============================================================================
# SHARDING ERRORS
# =============================================================================
@dataclass(eq=False)
class ShardingError(BlockmeshError):
    """Errors from mapping identifiers to object keys and back."""


class DecodeError(ShardingError):
    """
    Object key cannot be decoded back into a content identifier.
    """
    
    @classmethod
    def invalid_path(cls, path: str) -> DecodeError:
        """Path has no final segment."""
        return cls(
            code=ErrorCode.SHARDING_INVALID_PATH,
            message=f"Invalid shard path {path!r}: no final segment",
            context={"path": path},
        )
    
    @classmethod
    def invalid_token(
        cls,
        token: str,
        encoding: str,
        cause: Optional[BaseException] = None,
    ) -> DecodeError:
        """Codec rejected the encoded identifier."""
        return cls(
            code=ErrorCode.SHARDING_INVALID_TOKEN,
            message=f"Token {token[:64]!r} is not valid {encoding}",
            cause=cause,
            context={"token": token[:64], "encoding": encoding},
        )
    
    @classmethod
    def invalid_multihash(
        cls,
        token: str,
        cause: Optional[BaseException] = None,
    ) -> DecodeError:
        """Decoded bytes are not a multihash."""
        return cls(
            code=ErrorCode.SHARDING_INVALID_MULTIHASH,
            message=f"Token {token[:64]!r} does not decode to a valid multihash",
            cause=cause,
            context={"token": token[:64]},
        )


# =============================================================================
# OBJECT STORE ERRORS
# =============================================================================
@dataclass(eq=False)
class ObjectStoreError(BlockmeshError):
    """
    Failure reported by an in-process object store backend.
    
    Carries an HTTP-like status so the block store can classify it
    the same way it classifies responses from a remote service.
    """
    
    status_code: int = C.HTTP_INTERNAL_ERROR
    
    @classmethod
    def not_found(cls, bucket: str, key: str = "") -> ObjectStoreError:
        """Bucket or key is missing."""
        target = f"{bucket}/{key}" if key else bucket
        return cls(
            code=ErrorCode.OBJECT_STORE_NOT_FOUND,
            message=f"No such object: {target}",
            status_code=C.HTTP_NOT_FOUND,
            context={"bucket": bucket, "key": key},
        )
    
    @classmethod
    def forbidden(cls, bucket: str, key: str = "") -> ObjectStoreError:
        """Access policy denies the request."""
        target = f"{bucket}/{key}" if key else bucket
        return cls(
            code=ErrorCode.OBJECT_STORE_FORBIDDEN,
            message=f"Access denied: {target}",
            status_code=C.HTTP_FORBIDDEN,
            context={"bucket": bucket, "key": key},
        )
    
    @classmethod
    def request_failed(
        cls,
        operation: str,
        status_code: int = C.HTTP_INTERNAL_ERROR,
        cause: Optional[BaseException] = None,
    ) -> ObjectStoreError:
        """Any other backend failure."""
        return cls(
            code=ErrorCode.OBJECT_STORE_REQUEST_FAILED,
            message=f"Object store request '{operation}' failed with status {status_code}",
            status_code=status_code,
            cause=cause,
            context={"operation": operation},
        )


# =============================================================================
# CANCELLATION
# =============================================================================
@dataclass(eq=False)
class Cancelled(BlockmeshError):
    """Operation observed a fired cancellation token."""
    
    @classmethod
    def during(cls, operation: str, reason: Optional[str] = None) -> Cancelled:
        message = f"Operation '{operation}' was cancelled"
        if reason:
            message = f"{message}: {reason}"
        return cls(
            code=ErrorCode.OPERATION_CANCELLED,
            message=message,
            context={"operation": operation, "reason": reason},
        )


# =============================================================================
# STATUS CLASSIFICATION
# =============================================================================
def status_code_of(exc: BaseException) -> Optional[int]:
    """
    Extract the HTTP-like status of an object store failure.
    
    Understands ObjectStoreError (``status_code``), botocore's
    ClientError (``response["ResponseMetadata"]["HTTPStatusCode"]``,
    falling back to the S3 error code), and any exception exposing a
    ``status_code`` or ``status`` attribute.
    
    Returns:
        The status, or None when the failure carries none.
    """
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    
    response = getattr(exc, "response", None)
    if isinstance(response, dict):
        status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if isinstance(status, int):
            return status
        error_code = str(response.get("Error", {}).get("Code", ""))
        if error_code in C.S3_ERROR_CODE_STATUS:
            return C.S3_ERROR_CODE_STATUS[error_code]
    
    status = getattr(exc, "status", None)
    if isinstance(status, int):
        return status
    return None


def is_not_found(exc: BaseException) -> bool:
    return status_code_of(exc) == C.HTTP_NOT_FOUND


def is_forbidden(exc: BaseException) -> bool:
    return status_code_of(exc) == C.HTTP_FORBIDDEN
