"""
Content hashing using BLAKE3 or SHA-256.

Used by the local object backend to address objects by their bytes.
"""

import hashlib
from typing import BinaryIO

try:
    import blake3
    HAS_BLAKE3 = True
except ImportError:
    HAS_BLAKE3 = False


CHUNK_SIZE = 64 * 1024


def _new_hasher():
    if HAS_BLAKE3:
        return blake3.blake3()
    return hashlib.sha256()


def compute_hash(data: bytes) -> str:
    """
    Compute hash of raw bytes.

    Uses BLAKE3 if available, otherwise SHA-256.
    Returns hex-encoded hash string.
    """
    hasher = _new_hasher()
    hasher.update(data)
    return hasher.hexdigest()


def hash_stream(stream: BinaryIO, sink: BinaryIO = None) -> tuple[str, int]:
    """
    Hash a readable stream chunk by chunk.

    If ``sink`` is given every chunk is also written to it, so a caller
    can hash and persist in a single pass.

    Returns (hex hash, number of bytes read).
    """
    hasher = _new_hasher()
    total = 0
    while True:
        chunk = stream.read(CHUNK_SIZE)
        if not chunk:
            break
        hasher.update(chunk)
        if sink is not None:
            sink.write(chunk)
        total += len(chunk)
    return hasher.hexdigest(), total


def get_hash_prefix(hash_str: str, prefix_length: int = 2) -> str:
    """
    Get prefix of hash for directory sharding.

    Default is 2 characters, creating 256 subdirectories.
    """
    if len(hash_str) < prefix_length:
        raise ValueError(f"Hash too short for prefix length {prefix_length}")
    return hash_str[:prefix_length]
