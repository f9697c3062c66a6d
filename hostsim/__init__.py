"""
Host simulation for generated actors.

This package provides:
- primitives: Cid, hashing, and codec/hash constants
- codec: DAG-CBOR encoding and the type checks used by generated records
- errors: host errors and the abort channel
- blockstore / context: the syscall surface seen by generated code
- machine: a harness that installs actors and delivers messages
"""

from .primitives import (
    Cid,
    DAG_CBOR,
    RAW,
    BLAKE2B_256,
    SHA2_256,
    NO_DATA_BLOCK_ID,
    SYSTEM_ACTOR_ID,
    INIT_ACTOR_ID,
)

from .codec import (
    CodecError,
    RawBytes,
    to_vec,
    from_slice,
)

from .errors import (
    ActorAbort,
    ErrorNumber,
    ExitCode,
    HostError,
    abort,
)

from .blockstore import MemoryBlockstore
from .context import InvocationContext
from .actor import Actor
from .machine import Machine, Receipt

__all__ = [
    # Primitives
    "Cid",
    "DAG_CBOR",
    "RAW",
    "BLAKE2B_256",
    "SHA2_256",
    "NO_DATA_BLOCK_ID",
    "SYSTEM_ACTOR_ID",
    "INIT_ACTOR_ID",
    # Codec
    "CodecError",
    "RawBytes",
    "to_vec",
    "from_slice",
    # Errors
    "ActorAbort",
    "ErrorNumber",
    "ExitCode",
    "HostError",
    "abort",
    # Host
    "MemoryBlockstore",
    "InvocationContext",
    "Actor",
    "Machine",
    "Receipt",
]
