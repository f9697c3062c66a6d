"""
Binary codec for state records, parameters, and return values.

Values are encoded as canonical DAG-CBOR using cbor2. Records travel as
CBOR arrays of their fields in declaration order; CIDs travel as CBOR tag 42
with a leading zero byte (the identity multibase prefix).

The check_* / convert_* helpers are called by generated record code to
enforce declared field types in both directions.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import cbor2
from cbor2 import CBORDecodeError, CBOREncodeError, CBORTag

from .primitives import Cid


CID_TAG = 42


class CodecError(Exception):
    """A value could not be encoded or decoded."""


@dataclass(frozen=True)
class RawBytes:
    """Opaque, already-encoded bytes (method parameters and return values)."""
    data: bytes = b""

    def __len__(self) -> int:
        return len(self.data)


# =============================================================================
# Encoding / Decoding
# =============================================================================

def _encode_default(encoder, value):
    if isinstance(value, Cid):
        encoder.encode(CBORTag(CID_TAG, b"\x00" + value.to_bytes()))
    elif isinstance(value, RawBytes):
        encoder.encode(value.data)
    else:
        raise CBOREncodeError(f"cannot serialize type {type(value).__name__}")


def _tag_hook(decoder, tag):
    if tag.tag != CID_TAG:
        return tag
    if not isinstance(tag.value, bytes) or not tag.value.startswith(b"\x00"):
        raise CBORDecodeError("invalid cid tag payload")
    return Cid.from_bytes(tag.value[1:])


def to_vec(value: Any) -> bytes:
    """Encode a value as canonical DAG-CBOR."""
    try:
        return cbor2.dumps(value, canonical=True, default=_encode_default)
    except CBOREncodeError as err:
        raise CodecError(str(err)) from err


def from_slice(data: bytes) -> Any:
    """Decode DAG-CBOR bytes."""
    try:
        return cbor2.loads(data, tag_hook=_tag_hook)
    except (CBORDecodeError, ValueError) as err:
        # CBORDecodeError derives from ValueError; Cid.from_bytes raises the latter
        raise CodecError(str(err)) from err


# =============================================================================
# Type checks used by generated code
# =============================================================================

def _int_bounds(bits: int, signed: bool):
    if signed:
        return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    return 0, (1 << bits) - 1


def _check_int(value: Any, bits: int, signed: bool) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise CodecError(f"expected integer, got {type(value).__name__}")
    low, high = _int_bounds(bits, signed)
    if not low <= value <= high:
        kind = "i" if signed else "u"
        raise CodecError(f"{value} out of range for {kind}{bits}")
    return value


def check_uint(value: Any, bits: int) -> int:
    return _check_int(value, bits, signed=False)


def check_int(value: Any, bits: int) -> int:
    return _check_int(value, bits, signed=True)


def check_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise CodecError(f"expected bool, got {type(value).__name__}")
    return value


def check_str(value: Any) -> str:
    if not isinstance(value, str):
        raise CodecError(f"expected string, got {type(value).__name__}")
    return value


def check_bytes(value: Any) -> bytes:
    if not isinstance(value, (bytes, bytearray)):
        raise CodecError(f"expected bytes, got {type(value).__name__}")
    return bytes(value)


def check_cid(value: Any) -> Cid:
    if not isinstance(value, Cid):
        raise CodecError(f"expected cid, got {type(value).__name__}")
    return value


def convert_list(value: Any, convert: Callable[[Any], Any]) -> List[Any]:
    if not isinstance(value, (list, tuple)):
        raise CodecError(f"expected list, got {type(value).__name__}")
    return [convert(item) for item in value]


def convert_map(
    value: Any,
    convert_key: Callable[[Any], Any],
    convert_value: Callable[[Any], Any],
) -> Dict[Any, Any]:
    if not isinstance(value, dict):
        raise CodecError(f"expected map, got {type(value).__name__}")
    return {convert_key(k): convert_value(v) for k, v in value.items()}


def convert_optional(value: Any, convert: Callable[[Any], Any]) -> Optional[Any]:
    if value is None:
        return None
    return convert(value)


def record_to_tuple(value: Any, record_cls: type) -> List[Any]:
    """Encode a nested record field, checking its type."""
    if not isinstance(value, record_cls):
        raise CodecError(f"expected {record_cls.__name__}, got {type(value).__name__}")
    return value.to_tuple()


def expect_tuple(value: Any, size: int, record_name: str) -> List[Any]:
    """Check the array shape of an encoded record."""
    if not isinstance(value, list):
        raise CodecError(f"{record_name}: expected array, got {type(value).__name__}")
    if len(value) != size:
        raise CodecError(f"{record_name}: expected {size} fields, got {len(value)}")
    return value


def raw_bytes_of(value: Any) -> bytes:
    """Unwrap a RawBytes return value."""
    if not isinstance(value, RawBytes):
        raise CodecError(f"expected RawBytes, got {type(value).__name__}")
    return value.data
