"""
Machine harness for running generated actors.

Installs actor modules (anything exposing invoke(ctx, method_id)), delivers
messages one at a time, and turns aborts into failed receipts.
"""

from dataclasses import dataclass
from types import ModuleType
from typing import Any, Dict, List, Optional

from .blockstore import MemoryBlockstore
from .codec import from_slice
from .context import InvocationContext
from .errors import ActorAbort, ExitCode
from .primitives import Cid, FIRST_ACTOR_ID, NO_DATA_BLOCK_ID, SYSTEM_ACTOR_ID


@dataclass
class ActorEntry:
    """Host-side record of an installed actor."""
    module: ModuleType
    root: Optional[Cid] = None
    deleted: bool = False


@dataclass
class Receipt:
    """Outcome of one message."""
    exit_code: ExitCode
    return_data: Optional[bytes] = None
    return_codec: Optional[int] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == ExitCode.OK

    def decode(self) -> Any:
        """Decode the return block, or None if there is none."""
        if self.return_data is None:
            return None
        return from_slice(self.return_data)


class Machine:
    """
    Helper class to run actor invocations.

    One message is processed at a time per actor; state roots and the
    blockstore are shared, and nothing is rolled back on abort.
    """

    def __init__(self, blockstore: MemoryBlockstore = None):
        self.blockstore = blockstore if blockstore is not None else MemoryBlockstore()
        self.actors: Dict[int, ActorEntry] = {}
        self.next_actor_id = FIRST_ACTOR_ID
        self.receipts: List[Receipt] = []

    def install(self, module: ModuleType) -> int:
        """Install an actor module and return its id. No state root is set."""
        if not hasattr(module, "invoke"):
            raise ValueError(f"Module {module.__name__} has no invoke entrypoint")
        actor_id = self.next_actor_id
        self.next_actor_id += 1
        self.actors[actor_id] = ActorEntry(module=module)
        return actor_id

    def get_actor(self, actor_id: int) -> ActorEntry:
        entry = self.actors.get(actor_id)
        if entry is None:
            raise ValueError(f"Unknown actor: {actor_id}")
        return entry

    def delete_actor(self, actor_id: int):
        self.get_actor(actor_id).deleted = True

    def state_root(self, actor_id: int) -> Optional[Cid]:
        return self.get_actor(actor_id).root

    def load_state(self, actor_id: int) -> Any:
        """Decode the raw state tuple currently addressed by the actor's root."""
        root = self.state_root(actor_id)
        if root is None:
            return None
        return from_slice(self.blockstore.get(root))

    def send(
        self,
        actor_id: int,
        method: int,
        params: bytes = b"",
        caller: int = SYSTEM_ACTOR_ID,
        read_only: bool = False,
    ) -> Receipt:
        """Deliver one message and return its receipt."""
        entry = self.get_actor(actor_id)
        ctx = InvocationContext(
            self.blockstore,
            entry,
            actor_id,
            method,
            params=params,
            caller=caller,
            read_only=read_only,
        )

        try:
            block_id = entry.module.invoke(ctx, ctx.method_number())
        except ActorAbort as exc:
            receipt = Receipt(exit_code=exc.exit_code, message=exc.message)
        else:
            if block_id == NO_DATA_BLOCK_ID:
                receipt = Receipt(exit_code=ExitCode.OK)
            else:
                codec, data = ctx.get_block(block_id)
                receipt = Receipt(exit_code=ExitCode.OK, return_data=data, return_codec=codec)

        self.receipts.append(receipt)
        return receipt
