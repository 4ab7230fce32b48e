"""
Cooperative Cancellation

A CancellationToken is handed to block store operations by the
caller. Operations check it before issuing a request; backends race
in-flight requests against it when the transport can be interrupted.

Usage:
    token = CancellationToken()
    task = asyncio.create_task(consume(store.get_all(signal=token)))
    ...
    token.cancel("shutting down")
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

from blockmesh.core.errors import Cancelled

T = TypeVar("T")


class CancellationToken:
    """
    One-shot cancellation signal shared between a caller and the
    operations it starts.
    
    Once cancelled, a token stays cancelled.
    """
    
    __slots__ = ("_event", "_reason")
    
    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None
    
    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
    
    @property
    def reason(self) -> Optional[str]:
        return self._reason
    
    def cancel(self, reason: Optional[str] = None) -> None:
        """Fire the token. Later calls keep the first reason."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()
    
    def raise_if_cancelled(self, operation: str) -> None:
        """
        Raises:
            Cancelled: If the token has fired.
        """
        if self._event.is_set():
            raise Cancelled.during(operation, self._reason)
    
    async def wait(self) -> None:
        """Block until the token fires."""
        await self._event.wait()
    
    async def guard(self, awaitable: Awaitable[T], operation: str) -> T:
        """
        Await a request unless the token fires first.
        
        The request runs as its own task; if the token fires before
        it completes, the task is cancelled and Cancelled is raised.
        
        Raises:
            Cancelled: If the token fired before or during the request.
        """
        if self._event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise Cancelled.during(operation, self._reason)
        
        request = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {request, waiter},
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            request.cancel()
            raise
        finally:
            waiter.cancel()
        
        if request in done:
            return request.result()
        
        request.cancel()
        # Let the request unwind before reporting
        await asyncio.gather(request, return_exceptions=True)
        raise Cancelled.during(operation, self._reason)
    
    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"CancellationToken({state})"


def check_cancelled(signal: Optional[CancellationToken], operation: str) -> None:
    """raise_if_cancelled() for an optional token."""
    if signal is not None:
        signal.raise_if_cancelled(operation)


async def guarded(
    signal: Optional[CancellationToken],
    awaitable: Awaitable[T],
    operation: str,
) -> T:
    """guard() for an optional token; awaits directly without one."""
    if signal is None:
        return await awaitable
    return await signal.guard(awaitable, operation)
