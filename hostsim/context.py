"""
Per-invocation host context handed to generated actor code.

This is the explicit stand-in for the host's ambient syscalls: message
accessors, the actor's state root, the blockstore, and the return-block
registry.
"""

from typing import Any, List, Optional, Tuple

from .blockstore import MemoryBlockstore
from .errors import ErrorNumber, HostError
from .primitives import Cid, NO_DATA_BLOCK_ID, SUPPORTED_CODECS, SYSTEM_ACTOR_ID


class InvocationContext:
    """Host view of a single message being processed by one actor."""

    def __init__(
        self,
        blockstore: MemoryBlockstore,
        entry: Any,
        actor_id: int,
        method_number: int,
        params: bytes = b"",
        caller: int = SYSTEM_ACTOR_ID,
        read_only: bool = False,
    ):
        self.blockstore = blockstore
        self.entry = entry  # holds .root and .deleted for the receiving actor
        self.actor_id = actor_id
        self._method_number = method_number
        self._params = bytes(params)
        self._caller = caller
        self.read_only = read_only
        self.blocks: List[Tuple[int, bytes]] = []

    # =========================================================================
    # Message accessors
    # =========================================================================

    def method_number(self) -> int:
        return self._method_number

    def params_raw(self, method_id: int) -> bytes:
        """Raw parameter bytes of the current message."""
        if method_id != self._method_number:
            raise HostError(
                ErrorNumber.ILLEGAL_ARGUMENT,
                f"params requested for method {method_id}, message is for {self._method_number}",
            )
        return self._params

    def caller(self) -> int:
        return self._caller

    # =========================================================================
    # State root
    # =========================================================================

    def root(self) -> Optional[Cid]:
        """Current state root, or None if the actor never saved state."""
        if self.entry.deleted:
            raise HostError(ErrorNumber.ILLEGAL_OPERATION, f"actor {self.actor_id} has been deleted")
        return self.entry.root

    def set_root(self, cid: Cid) -> None:
        if self.entry.deleted:
            raise HostError(ErrorNumber.ILLEGAL_OPERATION, f"actor {self.actor_id} has been deleted")
        if self.read_only:
            raise HostError(ErrorNumber.READ_ONLY, "cannot update state root in a read-only send")
        if not self.blockstore.has(cid):
            raise HostError(ErrorNumber.NOT_FOUND, f"root block {cid} is not in the blockstore")
        self.entry.root = cid

    # =========================================================================
    # Blockstore
    # =========================================================================

    def ipld_get(self, cid: Cid) -> Optional[bytes]:
        return self.blockstore.get(cid)

    def ipld_put(self, hash_code: int, hash_size: int, codec: int, data: bytes) -> Cid:
        return self.blockstore.put(hash_code, hash_size, codec, data)

    # =========================================================================
    # Return blocks
    # =========================================================================

    def put_block(self, codec: int, data: bytes) -> int:
        """Register a block for this invocation and return its id (ids start at 1)."""
        if codec not in SUPPORTED_CODECS:
            raise HostError(ErrorNumber.ILLEGAL_CODEC, f"unsupported codec {codec:#x}")
        self.blocks.append((codec, bytes(data)))
        return len(self.blocks)

    def get_block(self, block_id: int) -> Tuple[int, bytes]:
        """Return (codec, data) for a registered block."""
        if block_id == NO_DATA_BLOCK_ID or not 0 < block_id <= len(self.blocks):
            raise HostError(ErrorNumber.NOT_FOUND, f"no block with id {block_id}")
        return self.blocks[block_id - 1]
