"""
Actor HelloWorldActor

Greets callers and counts greetings.

GENERATED FROM hello_world.actor
"""

import copy
import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from hostsim.codec import (
    CodecError, RawBytes, to_vec, from_slice,
    check_uint, check_int, check_bool, check_str, check_bytes, check_cid,
    convert_list, convert_map, convert_optional,
    record_to_tuple, expect_tuple, raw_bytes_of,
)
from hostsim.context import InvocationContext
from hostsim.errors import ExitCode, HostError, abort
from hostsim.primitives import Cid, BLAKE2B_256, DAG_CBOR, NO_DATA_BLOCK_ID

from hostsim.actors.hello_world import HelloWorldActor


# =============================================================================
# Parameters
# =============================================================================

STATE_HASH_CODE = BLAKE2B_256
STATE_HASH_SIZE = 32
STATE_CODEC = DAG_CBOR
RETURN_CODEC = DAG_CBOR


# =============================================================================
# Records
# =============================================================================

@dataclass
class State:
    """Greeting counter."""

    count: int = 0

    def to_tuple(self) -> List[Any]:
        return [
            check_uint(self.count, 64),
        ]

    @classmethod
    def from_tuple(cls, value: Any) -> 'State':
        fields = expect_tuple(value, 1, "State")
        return cls(
            count=check_uint(fields[0], 64),
        )

    def clone(self) -> 'State':
        return copy.deepcopy(self)

    @classmethod
    def load(cls, ctx: InvocationContext) -> 'State':
        """Load the State addressed by the actor's state root."""
        try:
            root = ctx.root()
        except HostError as err:
            abort(ExitCode.USR_ILLEGAL_STATE, f"failed to get root: {err}")
        if root is None:
            abort(ExitCode.USR_ILLEGAL_STATE, "state root not set")
        try:
            data = ctx.ipld_get(root)
        except HostError as err:
            abort(ExitCode.USR_ILLEGAL_STATE, f"failed to get state: {err}")
        if data is None:
            abort(ExitCode.USR_ILLEGAL_STATE, "state does not exist")
        try:
            return cls.from_tuple(from_slice(data))
        except CodecError as err:
            abort(ExitCode.USR_ILLEGAL_STATE, f"failed to decode state: {err}")

    def save(self, ctx: InvocationContext) -> Cid:
        """Store this State and point the actor's state root at it."""
        try:
            serialized = to_vec(self.to_tuple())
        except CodecError as err:
            abort(ExitCode.USR_SERIALIZATION, f"failed to serialize state: {err}")
        try:
            cid = ctx.ipld_put(STATE_HASH_CODE, STATE_HASH_SIZE, STATE_CODEC, serialized)
        except HostError as err:
            abort(ExitCode.USR_SERIALIZATION, f"failed to store state: {err}")
        try:
            ctx.set_root(cid)
        except HostError as err:
            abort(ExitCode.USR_ILLEGAL_STATE, f"failed to set root cid: {err}")
        return cid


# =============================================================================
# Method Table
# =============================================================================

METHOD_CONSTRUCTOR = 1
METHOD_SAY_HELLO = 2

METHODS: Dict[int, str] = {
    METHOD_CONSTRUCTOR: "constructor",
    METHOD_SAY_HELLO: "say_hello",
}


# =============================================================================
# Dispatch
# =============================================================================

def load_state(ctx: InvocationContext, method_id: int) -> State:
    """Constructor calls start from a default State; all others load it."""
    if method_id == METHOD_CONSTRUCTOR:
        return State()
    return State.load(ctx)


def dispatch(ctx: InvocationContext, method_id: int) -> int:
    """Run one message against HelloWorldActor; returns the return block id."""
    if method_id not in METHODS:
        abort(ExitCode.USR_UNHANDLED_MESSAGE, f"unrecognized method {method_id}")

    state = load_state(ctx, method_id)
    try:
        raw = ctx.params_raw(method_id)
    except HostError as err:
        abort(ExitCode.USR_SERIALIZATION, f"failed to read params: {err}")

    actor = HelloWorldActor(ctx)
    ret: Optional[bytes] = None

    if method_id == METHOD_CONSTRUCTOR:
        params = RawBytes(raw)
        actor.constructor(params, state)
    elif method_id == METHOD_SAY_HELLO:
        params = RawBytes(raw)
        result = actor.say_hello(params, state)
        if result is not None:
            try:
                ret = to_vec(check_str(result))
            except CodecError as err:
                abort(ExitCode.USR_SERIALIZATION, f"failed to serialize return value: {err}")

    if ret is None:
        return NO_DATA_BLOCK_ID
    try:
        return ctx.put_block(RETURN_CODEC, ret)
    except HostError as err:
        abort(ExitCode.USR_SERIALIZATION, f"failed to store return value: {err}")


def invoke(ctx: InvocationContext, method_id: int) -> int:
    """Host entrypoint."""
    return dispatch(ctx, method_id)
