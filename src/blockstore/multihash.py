"""Self-describing digest identifiers for blocks.

A multihash pairs a digest algorithm tag with the raw digest bytes. The
canonical byte encoding is ``varint(code) || varint(length) || digest`` and
the canonical text form is the lowercase hex of those bytes. All enumeration
and cursor handling orders identifiers by that hex string.
"""

from dataclasses import dataclass
from enum import Enum
from functools import total_ordering
from typing import Tuple

from .errors import InvalidArgumentError
from .utils import is_hex


class Algorithm(str, Enum):
    """Supported digest algorithms."""
    SHA1 = "sha1"
    SHA2_256 = "sha2-256"
    SHA2_512 = "sha2-512"
    BLAKE2B_256 = "blake2b-256"

    @property
    def code(self) -> int:
        return _TABLE[self][0]

    @property
    def length(self) -> int:
        return _TABLE[self][1]

    @classmethod
    def parse(cls, value) -> "Algorithm":
        """Coerce an algorithm tag (enum member or its name) to an Algorithm."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                pass
        raise InvalidArgumentError(f"Unknown digest algorithm: {value!r}")


# algorithm -> (multihash code, digest length)
_TABLE = {
    Algorithm.SHA1: (0x11, 20),
    Algorithm.SHA2_256: (0x12, 32),
    Algorithm.SHA2_512: (0x13, 64),
    Algorithm.BLAKE2B_256: (0xb220, 32),
}
_BY_CODE = {code: algo for algo, (code, _) in _TABLE.items()}

DEFAULT_ALGORITHM = Algorithm.SHA2_256


def _encode_varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _decode_varint(data: bytes, offset: int) -> Tuple[int, int]:
    """Decode an unsigned varint, returning (value, next_offset)."""
    value = 0
    shift = 0
    while offset < len(data):
        byte = data[offset]
        offset += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, offset
        shift += 7
        if shift > 63:
            break
    raise InvalidArgumentError(f"Truncated or oversized varint in multihash: {data.hex()!r}")


@total_ordering
@dataclass(frozen=True)
class Multihash:
    """Immutable digest identity of a block.

    Equality covers the algorithm and digest bytes; ordering follows the
    canonical hex encoding so sorted listings can be merged.
    """
    algorithm: Algorithm
    digest: bytes

    def __post_init__(self):
        algorithm = Algorithm.parse(self.algorithm)
        object.__setattr__(self, "algorithm", algorithm)
        if not isinstance(self.digest, (bytes, bytearray, memoryview)):
            raise InvalidArgumentError(f"Digest must be bytes, got {self.digest!r}")
        digest = bytes(self.digest)
        if len(digest) != algorithm.length:
            raise InvalidArgumentError(
                f"{algorithm.value} digest must be {algorithm.length} bytes, got {len(digest)}"
            )
        object.__setattr__(self, "digest", digest)

    def encode(self) -> bytes:
        """Canonical multihash byte encoding."""
        return _encode_varint(self.algorithm.code) + _encode_varint(len(self.digest)) + self.digest

    @property
    def hex(self) -> str:
        """Canonical lowercase hex form."""
        return self.encode().hex()

    @classmethod
    def decode(cls, data: bytes) -> "Multihash":
        """Parse the canonical byte encoding."""
        code, offset = _decode_varint(data, 0)
        length, offset = _decode_varint(data, offset)
        algorithm = _BY_CODE.get(code)
        if algorithm is None:
            raise InvalidArgumentError(f"Unknown multihash code: 0x{code:x}")
        digest = data[offset:]
        if len(digest) != length:
            raise InvalidArgumentError(
                f"Multihash declares {length} digest bytes but carries {len(digest)}"
            )
        return cls(algorithm, digest)

    @classmethod
    def from_hex(cls, text: str) -> "Multihash":
        """Parse the canonical hex form."""
        if not is_hex(text):
            raise InvalidArgumentError(f"Not a valid hex multihash: {text!r}")
        return cls.decode(bytes.fromhex(text))

    def __lt__(self, other):
        if not isinstance(other, Multihash):
            return NotImplemented
        return self.hex < other.hex

    def __str__(self) -> str:
        return self.hex

    def __repr__(self) -> str:
        return f"Multihash({self.algorithm.value}:{self.digest.hex()})"
