"""
System-Wide Constants for the Block Mesh

All defaults for the shard layout, listing and status mapping
centralized here.

Layout Contract:
- Changing any sharding default after blocks were written orphans
  those objects; readers must use an identically configured strategy.
"""

from typing import Final

# =============================================================================
# SHARD LAYOUT
# =============================================================================
DEFAULT_EXTENSION: Final[str] = ".data"
DEFAULT_PREFIX_LENGTH: Final[int] = 2
DEFAULT_ENCODING: Final[str] = "base32upper"
PATH_SEPARATOR: Final[str] = "/"

# Multicodec used when rebuilding identifiers from a stored multihash
DEFAULT_CID_CODEC: Final[str] = "raw"
DEFAULT_CID_VERSION: Final[int] = 1

# =============================================================================
# LISTING
# =============================================================================
# S3 ListObjectsV2 hard limit per page
DEFAULT_LIST_PAGE_SIZE: Final[int] = 1000
MAX_LIST_PAGE_SIZE: Final[int] = 1000

# =============================================================================
# STATUS CODES
# =============================================================================
HTTP_BAD_REQUEST: Final[int] = 400
HTTP_FORBIDDEN: Final[int] = 403
HTTP_NOT_FOUND: Final[int] = 404
HTTP_INTERNAL_ERROR: Final[int] = 500
HTTP_SERVICE_UNAVAILABLE: Final[int] = 503

# Error codes reported by S3-compatible services, mapped to a status
S3_ERROR_CODE_STATUS: Final[dict[str, int]] = {
    "NoSuchKey": HTTP_NOT_FOUND,
    "NoSuchBucket": HTTP_NOT_FOUND,
    "NotFound": HTTP_NOT_FOUND,
    "404": HTTP_NOT_FOUND,
    "AccessDenied": HTTP_FORBIDDEN,
    "Forbidden": HTTP_FORBIDDEN,
    "403": HTTP_FORBIDDEN,
}

# =============================================================================
# S3 CLIENT
# =============================================================================
S3_MAX_CONCURRENCY: Final[int] = 10
S3_CONNECT_TIMEOUT_SECONDS: Final[int] = 5
S3_READ_TIMEOUT_SECONDS: Final[int] = 60
S3_MAX_RETRIES: Final[int] = 3
