"""
Sharding module: Reversible identifier <-> object key layouts.
"""

from blockmesh.sharding.codecs import BaseCodec, MultibaseCodec
from blockmesh.sharding.strategies import (
    ShardingStrategy,
    NextToLast,
    FlatDirectory,
    shard_of,
)

__all__ = [
    "BaseCodec",
    "MultibaseCodec",
    "ShardingStrategy",
    "NextToLast",
    "FlatDirectory",
    "shard_of",
]
