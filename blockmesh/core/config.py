"""
Configuration for the Block Mesh

Provides validated configuration with documented defaults.
Supports environment variable overrides.

Design:
- Immutable after validation
- Fail-fast on invalid configuration
- Resolved once at construction, never read from global state
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

from blockmesh.core import constants as C

if TYPE_CHECKING:
    from blockmesh.sharding.strategies import ShardingStrategy


SHARDING_KINDS = ("next-to-last", "flat")


def _env_bool(value: str, default: bool) -> bool:
    value = value.strip().lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    return default


# =============================================================================
# SHARDING
# =============================================================================
@dataclass(frozen=True)
class ShardingConfig:
    """
    Sharding strategy configuration.
    
    Changing any field after blocks were written under the old
    configuration orphans those objects.
    
    Attributes:
        kind: "next-to-last" (bucketed) or "flat" (testing only).
        extension: Suffix appended to every object name.
        prefix_length: Number of trailing token characters used as
            the shard directory.
        encoding: Multibase encoding of the multihash token.
    """
    kind: str = "next-to-last"
    extension: str = C.DEFAULT_EXTENSION
    prefix_length: int = C.DEFAULT_PREFIX_LENGTH
    encoding: str = C.DEFAULT_ENCODING
    
    def __post_init__(self) -> None:
        if self.kind not in SHARDING_KINDS:
            raise ValueError(f"kind must be one of {SHARDING_KINDS}, got {self.kind!r}")
        if self.prefix_length < 0:
            raise ValueError(f"prefix_length must be >= 0, got {self.prefix_length}")
        if C.PATH_SEPARATOR in self.extension:
            raise ValueError(f"extension must not contain '{C.PATH_SEPARATOR}'")
    
    def build(self) -> ShardingStrategy:
        """Instantiate the configured strategy."""
        from blockmesh.sharding.codecs import MultibaseCodec
        from blockmesh.sharding.strategies import FlatDirectory, NextToLast
        
        codec = MultibaseCodec(self.encoding)
        if self.kind == "flat":
            return FlatDirectory(extension=self.extension, codec=codec)
        return NextToLast(
            extension=self.extension,
            prefix_length=self.prefix_length,
            codec=codec,
        )
    
    @classmethod
    def from_env(cls, prefix: str = "BLOCKMESH") -> ShardingConfig:
        """
        Environment Variables:
        - {prefix}_SHARDING: "next-to-last" or "flat"
        - {prefix}_SHARD_EXTENSION: object suffix (default: .data)
        - {prefix}_SHARD_PREFIX_LENGTH: shard directory length (default: 2)
        - {prefix}_SHARD_ENCODING: multibase encoding (default: base32upper)
        """
        length = os.environ.get(f"{prefix}_SHARD_PREFIX_LENGTH", "")
        return cls(
            kind=os.environ.get(f"{prefix}_SHARDING", "next-to-last"),
            extension=os.environ.get(f"{prefix}_SHARD_EXTENSION", C.DEFAULT_EXTENSION),
            prefix_length=int(length) if length else C.DEFAULT_PREFIX_LENGTH,
            encoding=os.environ.get(f"{prefix}_SHARD_ENCODING", C.DEFAULT_ENCODING),
        )


# =============================================================================
# BLOCK STORE
# =============================================================================
@dataclass(frozen=True)
class BlockstoreConfig:
    """
    Object-backed block store configuration.
    
    Attributes:
        create_if_missing: Create the bucket in open() when absent.
        prefix: Namespace prepended to every object key.
        sharding: Strategy instance; None selects NextToLast defaults.
    """
    create_if_missing: bool = False
    prefix: Optional[str] = None
    sharding: Optional[ShardingStrategy] = None
    
    @property
    def key_prefix(self) -> str:
        """
        Prefix as prepended to object keys.
        
        Empty when unset, otherwise ends with exactly one separator.
        """
        if not self.prefix:
            return ""
        stripped = self.prefix.rstrip(C.PATH_SEPARATOR)
        if not stripped:
            return ""
        return f"{stripped}{C.PATH_SEPARATOR}"
    
    def resolve_sharding(self) -> ShardingStrategy:
        if self.sharding is not None:
            return self.sharding
        return ShardingConfig().build()
    
    @classmethod
    def from_env(cls, prefix: str = "BLOCKMESH") -> BlockstoreConfig:
        """
        Environment Variables:
        - {prefix}_CREATE_IF_MISSING: create bucket on open (default: false)
        - {prefix}_PREFIX: key namespace (default: none)
        - sharding variables as read by ShardingConfig.from_env
        """
        return cls(
            create_if_missing=_env_bool(
                os.environ.get(f"{prefix}_CREATE_IF_MISSING", ""), False
            ),
            prefix=os.environ.get(f"{prefix}_PREFIX") or None,
            sharding=ShardingConfig.from_env(prefix).build(),
        )


# =============================================================================
# S3 CONNECTION
# =============================================================================
@dataclass(frozen=True)
class S3Config:
    """
    S3-compatible connection configuration.
    
    Retry and backoff for transient failures are configured here and
    applied by the client; the block store never retries.
    
    Attributes:
        bucket_name: Default bucket (block stores name their own).
        region: AWS region.
        endpoint_url: Custom endpoint for MinIO/R2 (None for AWS).
        access_key_id: AWS access key (None for IAM role auth).
        secret_access_key: AWS secret key (None for IAM role auth).
        session_token: Temporary session token for STS.
        max_concurrency: Connection pool size.
        connect_timeout_seconds: TCP connect timeout.
        read_timeout_seconds: Read operation timeout.
        max_retries: Max retry attempts for transient failures.
        use_ssl: Use HTTPS for connections.
        verify_ssl: Verify SSL certificates.
        list_page_size: MaxKeys per listing request.
    """
    bucket_name: str
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    
    max_concurrency: int = C.S3_MAX_CONCURRENCY
    connect_timeout_seconds: int = C.S3_CONNECT_TIMEOUT_SECONDS
    read_timeout_seconds: int = C.S3_READ_TIMEOUT_SECONDS
    max_retries: int = C.S3_MAX_RETRIES
    list_page_size: int = C.DEFAULT_LIST_PAGE_SIZE
    
    use_ssl: bool = True
    verify_ssl: bool = True
    
    def __post_init__(self) -> None:
        """
        Validate configuration invariants.
        
        Raises:
            ValueError: If any invariant is violated.
        """
        if not self.bucket_name or len(self.bucket_name) < 3:
            raise ValueError("bucket_name must be at least 3 characters")
        if self.max_concurrency <= 0:
            raise ValueError(f"max_concurrency must be > 0, got {self.max_concurrency}")
        if self.connect_timeout_seconds <= 0:
            raise ValueError("connect_timeout_seconds must be > 0")
        if self.read_timeout_seconds <= 0:
            raise ValueError("read_timeout_seconds must be > 0")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if not 0 < self.list_page_size <= C.MAX_LIST_PAGE_SIZE:
            raise ValueError(
                f"list_page_size must be in [1, {C.MAX_LIST_PAGE_SIZE}], "
                f"got {self.list_page_size}"
            )
    
    @classmethod
    def from_env(cls, prefix: str = "S3") -> S3Config:
        """
        Construct configuration from environment variables.
        
        Environment Variables:
        - {prefix}_BUCKET: Bucket name (required)
        - {prefix}_REGION: AWS region (default: us-east-1)
        - {prefix}_ENDPOINT_URL: Custom endpoint URL
        - {prefix}_ACCESS_KEY_ID: AWS access key ID
        - {prefix}_SECRET_ACCESS_KEY: AWS secret access key
        - AWS_SESSION_TOKEN: STS session token
        - {prefix}_MAX_CONCURRENCY: Pool size (default: 10)
        - {prefix}_MAX_RETRIES: Retry attempts (default: 3)
        - {prefix}_LIST_PAGE_SIZE: Keys per listing page (default: 1000)
        - {prefix}_USE_SSL: Use HTTPS (default: true)
        - {prefix}_VERIFY_SSL: Verify certs (default: true)
        
        Raises:
            ValueError: If required bucket_name is missing.
        """
        def _get(key: str, default: str = "") -> str:
            return os.environ.get(f"{prefix}_{key}", default)
        
        def _get_int(key: str, default: int) -> int:
            val = _get(key)
            return int(val) if val else default
        
        bucket = _get("BUCKET")
        if not bucket:
            raise ValueError(f"Environment variable {prefix}_BUCKET is required")
        
        return cls(
            bucket_name=bucket,
            region=_get("REGION", "us-east-1"),
            endpoint_url=_get("ENDPOINT_URL") or None,
            access_key_id=_get("ACCESS_KEY_ID") or os.environ.get("AWS_ACCESS_KEY_ID"),
            secret_access_key=_get("SECRET_ACCESS_KEY") or os.environ.get("AWS_SECRET_ACCESS_KEY"),
            session_token=os.environ.get("AWS_SESSION_TOKEN"),
            max_concurrency=_get_int("MAX_CONCURRENCY", C.S3_MAX_CONCURRENCY),
            connect_timeout_seconds=_get_int("CONNECT_TIMEOUT", C.S3_CONNECT_TIMEOUT_SECONDS),
            read_timeout_seconds=_get_int("READ_TIMEOUT", C.S3_READ_TIMEOUT_SECONDS),
            max_retries=_get_int("MAX_RETRIES", C.S3_MAX_RETRIES),
            list_page_size=_get_int("LIST_PAGE_SIZE", C.DEFAULT_LIST_PAGE_SIZE),
            use_ssl=_env_bool(_get("USE_SSL"), True),
            verify_ssl=_env_bool(_get("VERIFY_SSL"), True),
        )
    
    def get_client_kwargs(self) -> Dict[str, Any]:
        """
        Keyword arguments for ``session.client("s3", ...)``.
        
        Excludes the botocore Config object, which the store builds.
        """
        kwargs: Dict[str, Any] = {
            "region_name": self.region,
            "use_ssl": self.use_ssl,
        }
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        if self.access_key_id and self.secret_access_key:
            kwargs["aws_access_key_id"] = self.access_key_id
            kwargs["aws_secret_access_key"] = self.secret_access_key
        if self.session_token:
            kwargs["aws_session_token"] = self.session_token
        if not self.verify_ssl:
            kwargs["verify"] = False
        return kwargs
