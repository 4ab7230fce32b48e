"""
Shared fixtures: identifiers, blocks and stores.
"""

from __future__ import annotations

import hashlib
from typing import List

import multihash
import pytest
from cid import make_cid

from blockmesh.blockstore import ObjectBlockstore
from blockmesh.core.config import BlockstoreConfig
from blockmesh.core.types import CID, Pair
from blockmesh.storage import FileSystemObjectStore, InMemoryObjectStore

BUCKET = "blocks"


def block_cid(data: bytes, version: int = 1, codec: str = "raw") -> CID:
    """CID of a block, hashed with sha2-256."""
    digest = multihash.encode(hashlib.sha256(data).digest(), "sha2-256")
    return make_cid(version, codec, digest)


def make_pairs(count: int, tag: str = "block") -> List[Pair]:
    pairs = []
    for i in range(count):
        data = f"{tag}-{i}".encode("utf-8")
        pairs.append(Pair(cid=block_cid(data), block=data))
    return pairs


@pytest.fixture
def client() -> InMemoryObjectStore:
    """In-memory object store with the test bucket created."""
    return InMemoryObjectStore(buckets=[BUCKET])


@pytest.fixture
def store(client: InMemoryObjectStore) -> ObjectBlockstore:
    return ObjectBlockstore(client, BUCKET)


@pytest.fixture
def fs_client(tmp_path) -> FileSystemObjectStore:
    """Filesystem object store with the test bucket directory created."""
    (tmp_path / BUCKET).mkdir()
    return FileSystemObjectStore(tmp_path, page_size=4)


@pytest.fixture
def fs_store(fs_client: FileSystemObjectStore) -> ObjectBlockstore:
    return ObjectBlockstore(fs_client, BUCKET, BlockstoreConfig(prefix="ns"))
