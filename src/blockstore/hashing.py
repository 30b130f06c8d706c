"""Hashing utilities for computing block identities.

This module maps digest algorithms onto ``hashlib`` constructors and provides
in-memory and streaming digest computation.
"""

import hashlib
from typing import BinaryIO, Tuple

from .multihash import DEFAULT_ALGORITHM, Algorithm, Multihash

CHUNK_SIZE = 8192


def new_hasher(algorithm: Algorithm = DEFAULT_ALGORITHM):
    """Create a fresh hashlib object for the given algorithm."""
    algorithm = Algorithm.parse(algorithm)
    if algorithm is Algorithm.SHA1:
        return hashlib.sha1()
    if algorithm is Algorithm.SHA2_256:
        return hashlib.sha256()
    if algorithm is Algorithm.SHA2_512:
        return hashlib.sha512()
    if algorithm is Algorithm.BLAKE2B_256:
        return hashlib.blake2b(digest_size=32)
    raise NotImplementedError(f"Algorithm {algorithm.value} not supported")


def digest(data: bytes, algorithm: Algorithm = DEFAULT_ALGORITHM) -> Multihash:
    """Compute the multihash of in-memory bytes.

    Args:
        data: Content to hash
        algorithm: Digest algorithm to use

    Returns:
        Multihash identifying the content
    """
    hasher = new_hasher(algorithm)
    hasher.update(data)
    return Multihash(Algorithm.parse(algorithm), hasher.digest())


def digest_stream(stream: BinaryIO, algorithm: Algorithm = DEFAULT_ALGORITHM) -> Tuple[Multihash, int]:
    """Compute the multihash of a stream, reading it in chunks.

    Args:
        stream: Binary stream positioned at the start of the content
        algorithm: Digest algorithm to use

    Returns:
        Tuple of (multihash, number of bytes read)
    """
    hasher = new_hasher(algorithm)
    count = 0
    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
        hasher.update(chunk)
        count += len(chunk)
    return Multihash(Algorithm.parse(algorithm), hasher.digest()), count


__all__ = [
    "CHUNK_SIZE",
    "digest",
    "digest_stream",
    "new_hasher",
]
