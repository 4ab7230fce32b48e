"""
Base Codecs: Text Encodings for Multihash Tokens

A codec turns the raw multihash bytes of an identifier into the text
token used in object names, and back. Tokens produced by
MultibaseCodec carry their multibase prefix character, so a stored
name records which encoding wrote it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import multibase

from blockmesh.core import constants as C

_ALL_BYTES = bytes(range(256)) * 3


@runtime_checkable
class BaseCodec(Protocol):
    """
    Reversible bytes <-> text encoding.
    
    decode() raises ValueError (or a subclass) on text it did not
    produce.
    """
    
    @property
    def name(self) -> str:
        ...
    
    def encode(self, data: bytes) -> str:
        ...
    
    def decode(self, text: str) -> bytes:
        ...


class MultibaseCodec:
    """
    Codec backed by py-multibase.
    
    Example:
        >>> codec = MultibaseCodec("base32upper")
        >>> codec.encode(b"\\x12\\x20...")
        'BCIQ...'
    """
    
    __slots__ = ("_encoding", "_code")
    
    def __init__(self, encoding: str = C.DEFAULT_ENCODING) -> None:
        if not multibase.is_encoding_supported(encoding):
            raise ValueError(f"Unsupported multibase encoding: {encoding!r}")
        # Tokens become object path segments
        if C.PATH_SEPARATOR.encode("utf-8") in multibase.encode(encoding, _ALL_BYTES):
            raise ValueError(
                f"Multibase encoding {encoding!r} can emit '{C.PATH_SEPARATOR}'"
            )
        self._encoding = encoding
        self._code = multibase.get_encoding_info(encoding).code.decode("utf-8")
    
    @property
    def name(self) -> str:
        return self._encoding
    
    @property
    def code(self) -> str:
        """Multibase prefix character of every token."""
        return self._code
    
    def encode(self, data: bytes) -> str:
        return multibase.encode(self._encoding, data).decode("utf-8")
    
    def decode(self, text: str) -> bytes:
        """
        Raises:
            ValueError: If the text is not a token of this encoding.
        """
        if not text.startswith(self._code):
            raise multibase.InvalidMultibaseStringError(
                f"Expected {self._encoding} token (prefix {self._code!r}), got {text[:8]!r}"
            )
        return multibase.decode(text)
    
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultibaseCodec):
            return NotImplemented
        return self._encoding == other._encoding
    
    def __hash__(self) -> int:
        return hash(self._encoding)
    
    def __repr__(self) -> str:
        return f"MultibaseCodec({self._encoding!r})"
