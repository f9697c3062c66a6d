"""
Actor LedgerActor

Mints units and moves them between holders.

GENERATED FROM ledger.yaml
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

from hostsim.actors.ledger import LedgerActor


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
class MintParams:
    """Credit new units to a holder."""

    to: int = 0
    amount: int = 0

    def to_tuple(self) -> List[Any]:
        return [
            check_uint(self.to, 64),
            check_uint(self.amount, 64),
        ]

    @classmethod
    def from_tuple(cls, value: Any) -> 'MintParams':
        fields = expect_tuple(value, 2, "MintParams")
        return cls(
            to=check_uint(fields[0], 64),
            amount=check_uint(fields[1], 64),
        )

    def clone(self) -> 'MintParams':
        return copy.deepcopy(self)


@dataclass
class Transfer:
    """Move units from the caller to another holder."""

    to: int = 0
    amount: int = 0

    def to_tuple(self) -> List[Any]:
        return [
            check_uint(self.to, 64),
            check_uint(self.amount, 64),
        ]

    @classmethod
    def from_tuple(cls, value: Any) -> 'Transfer':
        fields = expect_tuple(value, 2, "Transfer")
        return cls(
            to=check_uint(fields[0], 64),
            amount=check_uint(fields[1], 64),
        )

    def clone(self) -> 'Transfer':
        return copy.deepcopy(self)


@dataclass
class TransferReceipt:
    sender: int = 0
    to: int = 0
    sender_balance: int = 0
    to_balance: int = 0

    def to_tuple(self) -> List[Any]:
        return [
            check_uint(self.sender, 64),
            check_uint(self.to, 64),
            check_uint(self.sender_balance, 64),
            check_uint(self.to_balance, 64),
        ]

    @classmethod
    def from_tuple(cls, value: Any) -> 'TransferReceipt':
        fields = expect_tuple(value, 4, "TransferReceipt")
        return cls(
            sender=check_uint(fields[0], 64),
            to=check_uint(fields[1], 64),
            sender_balance=check_uint(fields[2], 64),
            to_balance=check_uint(fields[3], 64),
        )

    def clone(self) -> 'TransferReceipt':
        return copy.deepcopy(self)


@dataclass
class LedgerState:
    """Balances keyed by holder id."""

    owner: int = 0
    total_supply: int = 0
    balances: Dict[int, int] = dataclasses.field(default_factory=dict)
    last_transfer: 'Optional[Transfer]' = None

    def to_tuple(self) -> List[Any]:
        return [
            check_uint(self.owner, 64),
            check_uint(self.total_supply, 64),
            convert_map(self.balances, lambda k: check_uint(k, 64), lambda v: check_uint(v, 64)),
            convert_optional(self.last_transfer, lambda v: record_to_tuple(v, Transfer)),
        ]

    @classmethod
    def from_tuple(cls, value: Any) -> 'LedgerState':
        fields = expect_tuple(value, 4, "LedgerState")
        return cls(
            owner=check_uint(fields[0], 64),
            total_supply=check_uint(fields[1], 64),
            balances=convert_map(fields[2], lambda k: check_uint(k, 64), lambda v: check_uint(v, 64)),
            last_transfer=convert_optional(fields[3], lambda v: Transfer.from_tuple(v)),
        )

    def clone(self) -> 'LedgerState':
        return copy.deepcopy(self)

    @classmethod
    def load(cls, ctx: InvocationContext) -> 'LedgerState':
        """Load the LedgerState addressed by the actor's state root."""
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
        """Store this LedgerState and point the actor's state root at it."""
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
METHOD_MINT = 2
METHOD_TRANSFER = 3
METHOD_BALANCE_OF = 4
METHOD_HOLDERS = 5
METHOD_ECHO = 6

METHODS: Dict[int, str] = {
    METHOD_CONSTRUCTOR: "constructor",
    METHOD_MINT: "mint",
    METHOD_TRANSFER: "transfer",
    METHOD_BALANCE_OF: "balance_of",
    METHOD_HOLDERS: "holders",
    METHOD_ECHO: "echo",
}


# =============================================================================
# Dispatch
# =============================================================================

def load_state(ctx: InvocationContext, method_id: int) -> LedgerState:
    """Constructor calls start from a default LedgerState; all others load it."""
    if method_id == METHOD_CONSTRUCTOR:
        return LedgerState()
    return LedgerState.load(ctx)


def dispatch(ctx: InvocationContext, method_id: int) -> int:
    """Run one message against LedgerActor; returns the return block id."""
    if method_id not in METHODS:
        abort(ExitCode.USR_UNHANDLED_MESSAGE, f"unrecognized method {method_id}")

    state = load_state(ctx, method_id)
    try:
        raw = ctx.params_raw(method_id)
    except HostError as err:
        abort(ExitCode.USR_SERIALIZATION, f"failed to read params: {err}")

    actor = LedgerActor(ctx)
    ret: Optional[bytes] = None

    if method_id == METHOD_CONSTRUCTOR:
        try:
            params = check_uint(from_slice(raw), 64)
        except CodecError as err:
            abort(ExitCode.USR_SERIALIZATION, f"failed to decode params for constructor: {err}")
        actor.constructor(params, state)
    elif method_id == METHOD_MINT:
        try:
            params = MintParams.from_tuple(from_slice(raw))
        except CodecError as err:
            abort(ExitCode.USR_SERIALIZATION, f"failed to decode params for mint: {err}")
        result = actor.mint(params, state)
        if result is not None:
            try:
                ret = to_vec(check_uint(result, 64))
            except CodecError as err:
                abort(ExitCode.USR_SERIALIZATION, f"failed to serialize return value: {err}")
    elif method_id == METHOD_TRANSFER:
        try:
            params = Transfer.from_tuple(from_slice(raw))
        except CodecError as err:
            abort(ExitCode.USR_SERIALIZATION, f"failed to decode params for transfer: {err}")
        result = actor.transfer(params, state)
        if result is not None:
            try:
                ret = to_vec(record_to_tuple(result, TransferReceipt))
            except CodecError as err:
                abort(ExitCode.USR_SERIALIZATION, f"failed to serialize return value: {err}")
    elif method_id == METHOD_BALANCE_OF:
        try:
            params = check_uint(from_slice(raw), 64)
        except CodecError as err:
            abort(ExitCode.USR_SERIALIZATION, f"failed to decode params for balance_of: {err}")
        result = actor.balance_of(params, state)
        if result is not None:
            try:
                ret = to_vec(check_uint(result, 64))
            except CodecError as err:
                abort(ExitCode.USR_SERIALIZATION, f"failed to serialize return value: {err}")
    elif method_id == METHOD_HOLDERS:
        params = RawBytes(raw)
        result = actor.holders(params, state)
        if result is not None:
            try:
                ret = to_vec(convert_list(result, lambda v: check_uint(v, 64)))
            except CodecError as err:
                abort(ExitCode.USR_SERIALIZATION, f"failed to serialize return value: {err}")
    elif method_id == METHOD_ECHO:
        params = RawBytes(raw)
        result = actor.echo(params, state)
        if result is not None:
            try:
                ret = raw_bytes_of(result)
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
