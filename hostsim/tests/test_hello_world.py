"""
Tests for the generated HelloWorldActor dispatch and persistence code.
"""

import pytest

from hostsim import (
    ActorAbort, Cid, CodecError, ExitCode, InvocationContext,
    DAG_CBOR, BLAKE2B_256, INIT_ACTOR_ID, NO_DATA_BLOCK_ID, SYSTEM_ACTOR_ID,
)
from hostsim.codec import to_vec
from hostsim.actors import hello_world_generated as hello


METHOD_CONSTRUCTOR = 1
METHOD_SAY_HELLO = 2


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def actor_id(machine):
    """An installed actor with no state root yet."""
    return machine.install(hello)


@pytest.fixture
def constructed(machine, actor_id):
    """An actor whose constructor has run."""
    receipt = machine.send(actor_id, METHOD_CONSTRUCTOR)
    assert receipt.ok
    return actor_id


def make_ctx(machine, actor_id, method_number, **kwargs):
    return InvocationContext(
        machine.blockstore, machine.get_actor(actor_id), actor_id, method_number, **kwargs
    )


# =============================================================================
# Method Table
# =============================================================================

class TestMethodTable:
    """Generated method numbering."""

    def test_constructor_is_method_one(self):
        assert hello.METHOD_CONSTRUCTOR == 1

    def test_methods_follow_declaration_order(self):
        assert hello.METHODS == {1: "constructor", 2: "say_hello"}
        assert hello.METHOD_SAY_HELLO == 2

    def test_state_constants(self):
        assert hello.STATE_HASH_CODE == BLAKE2B_256
        assert hello.STATE_HASH_SIZE == 32
        assert hello.STATE_CODEC == DAG_CBOR


# =============================================================================
# Scenario
# =============================================================================

class TestGreetingScenario:
    """Constructor, two greetings, then an unknown method."""

    def test_full_scenario(self, machine, actor_id):
        receipt = machine.send(actor_id, 1)
        assert receipt.exit_code == ExitCode.OK
        assert receipt.return_data is None
        assert machine.load_state(actor_id) == [0]

        receipt = machine.send(actor_id, 2)
        assert receipt.ok
        assert receipt.decode() == "Hello world #1!"
        assert machine.load_state(actor_id) == [1]

        receipt = machine.send(actor_id, 2)
        assert receipt.decode() == "Hello world #2!"
        assert machine.load_state(actor_id) == [2]

        root = machine.state_root(actor_id)
        receipt = machine.send(actor_id, 3)
        assert receipt.exit_code == ExitCode.USR_UNHANDLED_MESSAGE
        assert machine.state_root(actor_id) == root

    def test_return_block_is_dag_cbor_string(self, machine, constructed):
        receipt = machine.send(constructed, METHOD_SAY_HELLO)
        assert receipt.return_codec == DAG_CBOR
        assert receipt.return_data == to_vec("Hello world #1!")


# =============================================================================
# Constructor
# =============================================================================

class TestConstructor:
    """Constructor bootstraps state without loading it."""

    def test_runs_without_state_root(self, machine, actor_id):
        assert machine.state_root(actor_id) is None
        receipt = machine.send(actor_id, METHOD_CONSTRUCTOR)
        assert receipt.ok
        assert machine.state_root(actor_id) is not None

    def test_returns_no_data(self, machine, actor_id):
        ctx = make_ctx(machine, actor_id, METHOD_CONSTRUCTOR)
        assert hello.invoke(ctx, METHOD_CONSTRUCTOR) == NO_DATA_BLOCK_ID
        assert ctx.blocks == []

    def test_init_actor_may_construct(self, machine, actor_id):
        receipt = machine.send(actor_id, METHOD_CONSTRUCTOR, caller=INIT_ACTOR_ID)
        assert receipt.ok

    def test_other_callers_forbidden(self, machine, actor_id):
        receipt = machine.send(actor_id, METHOD_CONSTRUCTOR, caller=500)
        assert receipt.exit_code == ExitCode.USR_FORBIDDEN
        assert machine.state_root(actor_id) is None

    def test_rerun_resets_to_default(self, machine, constructed):
        machine.send(constructed, METHOD_SAY_HELLO)
        assert machine.load_state(constructed) == [1]

        receipt = machine.send(constructed, METHOD_CONSTRUCTOR, caller=SYSTEM_ACTOR_ID)
        assert receipt.ok
        assert machine.load_state(constructed) == [0]

    def test_state_root_addresses_encoded_default(self, machine, constructed):
        expected = Cid.compute(DAG_CBOR, BLAKE2B_256, to_vec([0]))
        assert machine.state_root(constructed) == expected


# =============================================================================
# Unknown Methods
# =============================================================================

class TestUnknownMethod:
    """Unknown ids abort before any state is loaded."""

    @pytest.mark.parametrize("method_id", [0, -1, 3, 99])
    def test_unhandled(self, machine, constructed, method_id):
        receipt = machine.send(constructed, method_id)
        assert receipt.exit_code == ExitCode.USR_UNHANDLED_MESSAGE
        assert receipt.message == f"unrecognized method {method_id}"

    def test_unhandled_before_constructor(self, machine, actor_id):
        # No state root exists; loading state would abort with ILLEGAL_STATE
        receipt = machine.send(actor_id, 3)
        assert receipt.exit_code == ExitCode.USR_UNHANDLED_MESSAGE

    def test_unhandled_writes_nothing(self, machine, constructed):
        blocks = len(machine.blockstore)
        machine.send(constructed, 7)
        assert len(machine.blockstore) == blocks


# =============================================================================
# Persistence Failures
# =============================================================================

class TestLoadFailures:
    """State loading failures abort with USR_ILLEGAL_STATE."""

    def test_state_root_not_set(self, machine, actor_id):
        receipt = machine.send(actor_id, METHOD_SAY_HELLO)
        assert receipt.exit_code == ExitCode.USR_ILLEGAL_STATE
        assert receipt.message == "state root not set"

    def test_state_block_missing(self, machine, actor_id):
        machine.get_actor(actor_id).root = Cid.compute(DAG_CBOR, BLAKE2B_256, b"never stored")
        receipt = machine.send(actor_id, METHOD_SAY_HELLO)
        assert receipt.exit_code == ExitCode.USR_ILLEGAL_STATE
        assert receipt.message == "state does not exist"

    def test_state_block_undecodable(self, machine, actor_id):
        root = machine.blockstore.put(BLAKE2B_256, 32, DAG_CBOR, to_vec(["not a count"]))
        machine.get_actor(actor_id).root = root
        receipt = machine.send(actor_id, METHOD_SAY_HELLO)
        assert receipt.exit_code == ExitCode.USR_ILLEGAL_STATE
        assert receipt.message.startswith("failed to decode state: ")

    def test_deleted_actor(self, machine, constructed):
        machine.delete_actor(constructed)
        receipt = machine.send(constructed, METHOD_SAY_HELLO)
        assert receipt.exit_code == ExitCode.USR_ILLEGAL_STATE
        assert receipt.message.startswith("failed to get root: ")


class TestSaveFailures:
    """Save failures abort; blocks already stored are not rolled back."""

    def test_set_root_rejected(self, machine, constructed):
        root = machine.state_root(constructed)
        blocks = len(machine.blockstore)

        receipt = machine.send(constructed, METHOD_SAY_HELLO, read_only=True)

        assert receipt.exit_code == ExitCode.USR_ILLEGAL_STATE
        assert receipt.message.startswith("failed to set root cid: ")
        assert machine.state_root(constructed) == root
        # The new state block was stored before set_root failed
        assert len(machine.blockstore) == blocks + 1
        assert machine.blockstore.has(Cid.compute(DAG_CBOR, BLAKE2B_256, to_vec([1])))

    def test_unserializable_state(self, machine, constructed):
        ctx = make_ctx(machine, constructed, METHOD_SAY_HELLO)
        state = hello.State(count=2 ** 64)
        with pytest.raises(ActorAbort) as exc_info:
            state.save(ctx)
        assert exc_info.value.exit_code == ExitCode.USR_SERIALIZATION
        assert "failed to serialize state" in exc_info.value.message


# =============================================================================
# Direct Dispatch
# =============================================================================

class TestDispatch:
    """dispatch() against a hand-built context."""

    def test_returns_block_id(self, machine, constructed):
        ctx = make_ctx(machine, constructed, METHOD_SAY_HELLO)
        block_id = hello.dispatch(ctx, METHOD_SAY_HELLO)
        assert block_id == 1
        assert ctx.get_block(block_id) == (DAG_CBOR, to_vec("Hello world #1!"))

    def test_params_for_other_message(self, machine, actor_id):
        ctx = make_ctx(machine, actor_id, METHOD_SAY_HELLO)
        with pytest.raises(ActorAbort) as exc_info:
            hello.dispatch(ctx, METHOD_CONSTRUCTOR)
        assert exc_info.value.exit_code == ExitCode.USR_SERIALIZATION
        assert exc_info.value.message.startswith("failed to read params: ")

    def test_load_state_bootstraps_constructor(self, machine, actor_id):
        ctx = make_ctx(machine, actor_id, METHOD_CONSTRUCTOR)
        assert hello.load_state(ctx, METHOD_CONSTRUCTOR) == hello.State(count=0)


# =============================================================================
# State Record
# =============================================================================

class TestStateRecord:
    """Generated record capabilities: default, clone, codec."""

    def test_default(self):
        assert hello.State().count == 0

    def test_clone_is_independent(self):
        state = hello.State(count=5)
        copy = state.clone()
        copy.count += 1
        assert state.count == 5
        assert copy.count == 6

    def test_to_tuple(self):
        assert hello.State(count=7).to_tuple() == [7]

    def test_from_tuple_wrong_size(self):
        with pytest.raises(CodecError):
            hello.State.from_tuple([1, 2])

    def test_negative_count_rejected(self):
        with pytest.raises(CodecError):
            hello.State(count=-1).to_tuple()
