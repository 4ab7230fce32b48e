"""
Base Block Store: Shared Contract and Batched Helpers

Concrete stores implement the single-key primitives; the batched
operations are built here from those primitives, one key at a time,
in input order.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterable, AsyncIterator, Iterable, Optional, Union

from blockmesh.core.cancellation import CancellationToken, check_cancelled
from blockmesh.core.types import CID, Pair

PairSource = Union[Iterable[Pair], AsyncIterable[Pair]]
CIDSource = Union[Iterable[CID], AsyncIterable[CID]]


async def _iterate(source: Union[Iterable[Any], AsyncIterable[Any]]) -> AsyncIterator[Any]:
    """Uniform async iteration over sync or async sources."""
    if hasattr(source, "__aiter__"):
        async for item in source:
            yield item
    else:
        for item in source:
            yield item


class BaseBlockstore(ABC):
    """Abstract content-addressed block store."""
    
    __slots__ = ()
    
    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------
    
    async def open(self, *, signal: Optional[CancellationToken] = None) -> None:
        """Prepare the store for use. No-op by default."""
    
    async def close(self) -> None:
        """Release resources. No-op by default."""
    
    async def __aenter__(self) -> BaseBlockstore:
        await self.open()
        return self
    
    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
    
    # -------------------------------------------------------------------------
    # SINGLE-KEY PRIMITIVES
    # -------------------------------------------------------------------------
    
    @abstractmethod
    async def put(
        self,
        cid: CID,
        block: bytes,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> CID:
        """Store a block; returns its identifier."""
        pass
    
    @abstractmethod
    async def get(
        self,
        cid: CID,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> bytes:
        """Read a block."""
        pass
    
    @abstractmethod
    async def has(
        self,
        cid: CID,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> bool:
        """Check whether a block is stored."""
        pass
    
    @abstractmethod
    async def delete(
        self,
        cid: CID,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> None:
        """Remove a block; missing blocks are not an error."""
        pass
    
    @abstractmethod
    def get_all(
        self,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> AsyncIterator[Pair]:
        """Enumerate every stored block."""
        pass
    
    # -------------------------------------------------------------------------
    # BATCHED HELPERS
    # -------------------------------------------------------------------------
    
    async def put_many(
        self,
        pairs: PairSource,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> AsyncIterator[CID]:
        """
        Store each pair, yielding identifiers as they are written.
        
        Stops at the first failure; earlier writes stay in place.
        """
        async for pair in _iterate(pairs):
            check_cancelled(signal, "put_many")
            yield await self.put(pair.cid, pair.block, signal=signal)
    
    async def get_many(
        self,
        cids: CIDSource,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> AsyncIterator[Pair]:
        async for cid in _iterate(cids):
            check_cancelled(signal, "get_many")
            block = await self.get(cid, signal=signal)
            yield Pair(cid=cid, block=block)
    
    async def delete_many(
        self,
        cids: CIDSource,
        *,
        signal: Optional[CancellationToken] = None,
    ) -> AsyncIterator[CID]:
        async for cid in _iterate(cids):
            check_cancelled(signal, "delete_many")
            await self.delete(cid, signal=signal)
            yield cid
