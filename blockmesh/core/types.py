"""
Core Type Definitions for the Block Mesh

Implements the Result monad used at connection boundaries, the
timestamp used for error correlation, and the Pair record yielded
by block enumeration.

Design Principles:
- Block identifiers are never constructed here, only carried
- Records are immutable after construction
- Results are used where failure is an expected outcome (connect,
  health checks); block operations raise typed errors instead
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import (
    Any,
    Generic,
    Literal,
    TypeVar,
    Union,
)

from cid import CIDv0, CIDv1

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type

# Content identifier as produced by py-cid
CID = Union[CIDv0, CIDv1]


# =============================================================================
# RESULT MONAD
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Success variant of Result monad.
    
    Immutable container for successful computation results.
    """
    
    value: T
    
    def is_ok(self) -> Literal[True]:
        return True
    
    def is_err(self) -> Literal[False]:
        return False
    
    def unwrap(self) -> T:
        """Extract value. Safe to call after is_ok() check."""
        return self.value
    
    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result monad.
    
    Immutable container for the failure description.
    """
    
    error: E
    
    def is_ok(self) -> Literal[False]:
        return False
    
    def is_err(self) -> Literal[True]:
        return True
    
    def unwrap(self) -> Any:
        """
        Attempting to unwrap an error is a programming error.
        
        Raises:
            RuntimeError: Always, with error context
        """
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")
    
    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# TIMESTAMP
# =============================================================================
@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """
    Nanosecond timestamp since Unix epoch.
    
    Used to correlate errors with request logs.
    """
    
    nanos: int
    
    @classmethod
    def now(cls) -> Timestamp:
        """Capture current time with nanosecond precision."""
        return cls(nanos=time.time_ns())


# =============================================================================
# ENUMERATION RECORD
# =============================================================================
@dataclass(frozen=True, slots=True)
class Pair:
    """
    A block and the identifier it is stored under.
    
    Yielded by enumeration and accepted by batched writes. Built on
    demand from a listing entry plus a follow-up read; never persisted
    as a unit of its own.
    
    Attributes:
        cid: Content identifier of the block.
        block: Raw block bytes.
    """
    
    cid: CID
    block: bytes
    
    def __repr__(self) -> str:
        return f"Pair(cid={self.cid}, block=<{len(self.block)} bytes>)"
