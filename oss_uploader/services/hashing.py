"""
Content hashing for storage keys.

Hashes are computed in a worker thread so large files never block the
event loop.
"""
import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict

from blake3 import blake3

log = logging.getLogger(__name__)

CHUNK_SIZE = 65536  # 64KB chunks


def _hash_file(path: Path, hasher) -> str:
    """Synchronous hash calculation to run in thread pool."""
    with open(path, "rb") as f:
        while True:
            chunk = f.read(CHUNK_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()


async def blake3_file(path: Path) -> str:
    """Calculate BLAKE3 hash of file asynchronously (non-blocking)."""
    return await asyncio.to_thread(_hash_file, Path(path), blake3())


async def md5_file(path: Path) -> str:
    """Calculate MD5 hash of file asynchronously (the digest OSS ETags use)."""
    return await asyncio.to_thread(_hash_file, Path(path), hashlib.md5())


HASHERS: Dict[str, Callable[[Path], Awaitable[str]]] = {
    "blake3": blake3_file,
    "md5": md5_file,
}


def get_hasher(name: str) -> Callable[[Path], Awaitable[str]]:
    """Return the hasher registered under name."""
    try:
        return HASHERS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unsupported hash algorithm: {name} (expected one of {', '.join(sorted(HASHERS))})"
        ) from None
