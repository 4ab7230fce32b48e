"""
Block store module: Content-addressed block stores over object stores.
"""

from blockmesh.blockstore.base import BaseBlockstore
from blockmesh.blockstore.objects import ObjectBlockstore, to_bytes

__all__ = [
    "BaseBlockstore",
    "ObjectBlockstore",
    "to_bytes",
]
