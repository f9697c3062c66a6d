"""
In-memory content-addressed blockstore.
"""

from typing import Dict, Optional

from .errors import ErrorNumber, HostError
from .primitives import Cid, HASH_SIZES, SUPPORTED_CODECS


class MemoryBlockstore:
    """
    Blocks keyed by the CID of their bytes.

    Blocks are never removed: a block stored by an invocation that later
    aborts stays addressable.
    """

    def __init__(self):
        self.blocks: Dict[Cid, bytes] = {}

    def __len__(self) -> int:
        return len(self.blocks)

    def has(self, cid: Cid) -> bool:
        return cid in self.blocks

    def get(self, cid: Cid) -> Optional[bytes]:
        """Get a block's bytes, or None if absent."""
        return self.blocks.get(cid)

    def put(self, hash_code: int, hash_size: int, codec: int, data: bytes) -> Cid:
        """Store data and return its CID."""
        if codec not in SUPPORTED_CODECS:
            raise HostError(ErrorNumber.ILLEGAL_CODEC, f"unsupported codec {codec:#x}")
        expected_size = HASH_SIZES.get(hash_code)
        if expected_size is None:
            raise HostError(ErrorNumber.ILLEGAL_CID, f"unsupported hash function {hash_code:#x}")
        if hash_size != expected_size:
            raise HostError(
                ErrorNumber.ILLEGAL_CID,
                f"hash size {hash_size} does not match {expected_size} for {hash_code:#x}",
            )

        cid = Cid.compute(codec, hash_code, bytes(data))
        self.blocks[cid] = bytes(data)
        return cid
