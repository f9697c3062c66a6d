"""
Core host primitives: content addresses, hashing, and well-known constants.
"""

import base64
import hashlib
from dataclasses import dataclass
from typing import Tuple


# =============================================================================
# Multicodec / Multihash Constants
# =============================================================================

# Codecs
RAW = 0x55
CBOR = 0x51
DAG_CBOR = 0x71

SUPPORTED_CODECS = {RAW, CBOR, DAG_CBOR}

# Hash functions (multihash codes)
SHA2_256 = 0x12
BLAKE2B_256 = 0xB220

# Digest size in bytes for each supported hash function
HASH_SIZES = {
    SHA2_256: 32,
    BLAKE2B_256: 32,
}

CID_VERSION = 1

# Block id returned by an entrypoint that produced no return value
NO_DATA_BLOCK_ID = 0

# Well-known actor ids
SYSTEM_ACTOR_ID = 0
INIT_ACTOR_ID = 1
FIRST_ACTOR_ID = 100


# =============================================================================
# Hashing
# =============================================================================

def digest(hash_code: int, data: bytes) -> bytes:
    """Compute the digest of data with a multihash function code."""
    if hash_code == BLAKE2B_256:
        return hashlib.blake2b(data, digest_size=32).digest()
    if hash_code == SHA2_256:
        return hashlib.sha256(data).digest()
    raise ValueError(f"unsupported hash function: {hash_code:#x}")


# =============================================================================
# Varints
# =============================================================================

def encode_varint(value: int) -> bytes:
    """Encode an unsigned integer as an unsigned LEB128 varint."""
    if value < 0:
        raise ValueError(f"varint must be unsigned, got {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_varint(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """Decode a varint at offset. Returns (value, next_offset)."""
    value = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise ValueError("truncated varint")
        byte = data[offset]
        offset += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, offset
        shift += 7
        if shift > 63:
            raise ValueError("varint too long")


# =============================================================================
# Content Addresses
# =============================================================================

@dataclass(frozen=True)
class Cid:
    """
    A version 1 content identifier.

    Binary form: varint(version) varint(codec) varint(hash_code)
    varint(len(digest)) digest. The string form is multibase base32
    (lowercase, unpadded, prefixed with 'b').
    """
    codec: int
    hash_code: int
    digest: bytes
    version: int = CID_VERSION

    @classmethod
    def compute(cls, codec: int, hash_code: int, data: bytes) -> 'Cid':
        """Address data under a codec and hash function."""
        return cls(codec=codec, hash_code=hash_code, digest=digest(hash_code, data))

    def to_bytes(self) -> bytes:
        return (
            encode_varint(self.version)
            + encode_varint(self.codec)
            + encode_varint(self.hash_code)
            + encode_varint(len(self.digest))
            + self.digest
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> 'Cid':
        """Parse the binary form. Raises ValueError on malformed input."""
        version, offset = decode_varint(data)
        if version != CID_VERSION:
            raise ValueError(f"unsupported cid version: {version}")
        codec, offset = decode_varint(data, offset)
        hash_code, offset = decode_varint(data, offset)
        size, offset = decode_varint(data, offset)
        body = data[offset:]
        if len(body) != size:
            raise ValueError(f"cid digest length mismatch: expected {size}, got {len(body)}")
        return cls(codec=codec, hash_code=hash_code, digest=bytes(body), version=version)

    def __str__(self) -> str:
        encoded = base64.b32encode(self.to_bytes()).decode("ascii").rstrip("=").lower()
        return "b" + encoded
