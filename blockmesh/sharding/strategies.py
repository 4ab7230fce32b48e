"""
Sharding Strategies: Content Identifier <-> Object Key

A strategy is a pure, reversible mapping between a content
identifier and the object name it is stored under:

    NextToLast:     "{shard}/{token}{extension}"   e.g. "GH/BCIQ...GH.data"
    FlatDirectory:  "{token}{extension}"

where ``token`` is the codec's encoding of the identifier's multihash
and ``shard`` the last ``prefix_length`` characters of the token.

Why sharding:
-------------
Flat listings and filesystem-backed stores degrade when one prefix
holds millions of entries. Using the token tail (the tail of a hash,
so uniformly distributed) spreads blocks over up to
``alphabet_size ** prefix_length`` buckets.

Layout Contract:
----------------
The mapping is persisted state. Any reader of a bucket must use an
identically configured strategy to find its blocks.

Only the multihash is stored, and decode() always rebuilds a raw
CIDv1 from it. Readers that parse the stored bytes as a whole CID
get a CIDv0 for sha2-256 blocks instead; both carry the same
multihash, so they address the same object.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import multihash
from cid import make_cid

from blockmesh.core import constants as C
from blockmesh.core.errors import DecodeError
from blockmesh.core.types import CID
from blockmesh.sharding.codecs import BaseCodec, MultibaseCodec


class ShardingStrategy(ABC):
    """
    Abstract reversible identifier <-> path mapping.
    
    Configuration is fixed at construction. Subclasses only decide
    how the token is placed in the path; decoding is shared, since it
    only ever looks at the final path segment.
    """
    
    __slots__ = ("_extension", "_codec")
    
    def __init__(
        self,
        extension: str = C.DEFAULT_EXTENSION,
        codec: Optional[BaseCodec] = None,
    ) -> None:
        if C.PATH_SEPARATOR in extension:
            raise ValueError(f"extension must not contain '{C.PATH_SEPARATOR}'")
        self._extension = extension
        self._codec = codec if codec is not None else MultibaseCodec()
    
    @property
    def extension(self) -> str:
        return self._extension
    
    @property
    def codec(self) -> BaseCodec:
        return self._codec
    
    def token(self, cid: CID) -> str:
        """Encoded multihash of the identifier."""
        return self._codec.encode(cid.multihash)
    
    @abstractmethod
    def encode(self, cid: CID) -> str:
        """Object path for the identifier."""
    
    def decode(self, path: str) -> CID:
        """
        Rebuild the identifier stored at ``path``.
        
        Everything before the last separator is ignored, so keys with
        a namespace prefix or a different shard layout decode too.
        
        Raises:
            DecodeError: If there is no final segment, the codec
                rejects the token, or the bytes are not a multihash.
        """
        file_name = path.rsplit(C.PATH_SEPARATOR, 1)[-1]
        if not file_name:
            raise DecodeError.invalid_path(path)
        
        if self._extension and file_name.endswith(self._extension):
            file_name = file_name[: -len(self._extension)]
        if not file_name:
            raise DecodeError.invalid_path(path)
        
        try:
            digest = self._codec.decode(file_name)
        except ValueError as e:
            raise DecodeError.invalid_token(file_name, self._codec.name, cause=e) from e
        
        try:
            multihash.decode(digest)
            return make_cid(C.DEFAULT_CID_VERSION, C.DEFAULT_CID_CODEC, digest)
        except (TypeError, ValueError, EOFError) as e:
            raise DecodeError.invalid_multihash(file_name, cause=e) from e
    
    def __eq__(self, other: object) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        return self._config_tuple() == other._config_tuple()
    
    def __hash__(self) -> int:
        return hash((type(self).__name__, self._config_tuple()))
    
    def _config_tuple(self) -> tuple:
        return (self._extension, self._codec.name)


class NextToLast(ShardingStrategy):
    """
    Shards by the last ``prefix_length`` characters of the token.
    
    A prefix length of zero disables the shard directory and yields
    the same paths as FlatDirectory.
    
    Example:
        >>> strategy = NextToLast(prefix_length=2)
        >>> strategy.encode(cid)
        'YQ/BCIQ...YQ.data'
    """
    
    __slots__ = ("_prefix_length",)
    
    def __init__(
        self,
        extension: str = C.DEFAULT_EXTENSION,
        prefix_length: int = C.DEFAULT_PREFIX_LENGTH,
        codec: Optional[BaseCodec] = None,
    ) -> None:
        super().__init__(extension=extension, codec=codec)
        if prefix_length < 0:
            raise ValueError(f"prefix_length must be >= 0, got {prefix_length}")
        self._prefix_length = prefix_length
    
    @property
    def prefix_length(self) -> int:
        return self._prefix_length
    
    def shard(self, token: str) -> str:
        """Bucket segment for a token (whole token if shorter)."""
        if self._prefix_length == 0:
            return ""
        return token[-self._prefix_length:]
    
    def encode(self, cid: CID) -> str:
        token = self.token(cid)
        shard = self.shard(token)
        if not shard:
            return f"{token}{self._extension}"
        return f"{shard}{C.PATH_SEPARATOR}{token}{self._extension}"
    
    def _config_tuple(self) -> tuple:
        return (self._extension, self._codec.name, self._prefix_length)
    
    def __repr__(self) -> str:
        return (
            f"NextToLast(extension={self._extension!r}, "
            f"prefix_length={self._prefix_length}, codec={self._codec!r})"
        )


class FlatDirectory(ShardingStrategy):
    """
    No sharding: every block directly under the bucket root.
    
    For tests and diagnostics only. Unsuitable for production-scale
    stores, where a single prefix would accumulate every object.
    """
    
    __slots__ = ()
    
    def encode(self, cid: CID) -> str:
        return f"{self.token(cid)}{self._extension}"
    
    def __repr__(self) -> str:
        return f"FlatDirectory(extension={self._extension!r}, codec={self._codec!r})"


def shard_of(path: str) -> str:
    """
    Shard segment of a path: the component before the file name.
    
    Empty for flat paths.
    """
    parts = path.rsplit(C.PATH_SEPARATOR, 2)
    if len(parts) < 2:
        return ""
    return parts[-2]
