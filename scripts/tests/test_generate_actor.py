"""
Tests for the actor code generator.

Generated modules are compiled and executed against the host simulation,
so these tests check behaviour rather than the exact text emitted.
"""

import subprocess
import sys
import types
from pathlib import Path

import pytest

SCRIPTS_DIR = Path(__file__).parent.parent
REPO_ROOT = SCRIPTS_DIR.parent
sys.path.insert(0, str(SCRIPTS_DIR))
sys.path.insert(0, str(REPO_ROOT))

from actor_ast import SimpleType, ListType, MapType, OptionalType
from actor_parser import parse_type
from generate_actor import (
    python_type, default_value, convert_expr, emit_abort, ordered_records,
    generate_python, generate_markdown,
)
from method_table import MethodTableError, read_lock

from hostsim import ExitCode, Machine, Cid, DAG_CBOR, RAW, BLAKE2B_256
from hostsim.codec import to_vec, from_slice


ACTORS_DIR = REPO_ROOT / "hostsim" / "actors"


GREETER_IMPL = '''
from hostsim.actor import Actor
from hostsim.primitives import Cid, BLAKE2B_256, RAW


class Greeter(Actor):

    def constructor(self, params, state):
        state.save(self.ctx)

    def greet(self, name, state):
        state.count += 1
        state.names.append(name)
        state.anchor = Cid.compute(RAW, BLAKE2B_256, name.encode())
        state.save(self.ctx)
        return f"Hi {name}"

    def silent(self, params, state):
        return None

    def snapshot(self, params, state):
        return state
'''

GREETER_MANIFEST = '''
record Inner ( flag bool )

record State "Everything the greeter remembers." (
    count u32
    names list<string>
    scores map<string, i16>
    nickname optional<string>
    inner Inner
    anchor optional<cid>
    blob bytes
)

actor Greeter "Greets by name." (
    state State
    implementation {module}
    invoke {invoke}

    constructor constructor()
    method greet(string) -> string
    method silent() -> string
    method snapshot() -> State
)
'''


def load_generated(source: str, name: str, monkeypatch) -> types.ModuleType:
    """Compile generated source into a module registered in sys.modules."""
    module = types.ModuleType(name)
    module.__file__ = f"{name}.py"
    monkeypatch.setitem(sys.modules, name, module)
    exec(compile(source, module.__file__, "exec"), module.__dict__)
    return module


@pytest.fixture
def greeter_manifest(tmp_path, monkeypatch, request):
    """Write the greeter manifest and an importable implementation module."""
    module_name = f"greeter_impl_{request.node.name.replace('[', '_').replace(']', '_').replace('-', '_')}"
    (tmp_path / f"{module_name}.py").write_text(GREETER_IMPL)
    monkeypatch.syspath_prepend(str(tmp_path))

    def write(invoke="true"):
        path = tmp_path / "greeter.actor"
        path.write_text(GREETER_MANIFEST.format(module=module_name, invoke=invoke))
        return path

    return write


@pytest.fixture
def greeter(greeter_manifest, monkeypatch):
    source = generate_python(greeter_manifest(), use_lock=False)
    return load_generated(source, "greeter_generated", monkeypatch)


# =============================================================================
# Type translation
# =============================================================================

class TestTypeTranslation:

    @pytest.mark.parametrize("manifest_type, hint", [
        ("u64", "int"),
        ("i8", "int"),
        ("bool", "bool"),
        ("string", "str"),
        ("bytes", "bytes"),
        ("cid", "Cid"),
        ("RawBytes", "RawBytes"),
        ("list<u8>", "List[int]"),
        ("map<string, list<bool>>", "Dict[str, List[bool]]"),
        ("optional<State>", "Optional[State]"),
    ])
    def test_python_type(self, manifest_type, hint):
        assert python_type(parse_type(manifest_type)) == hint

    def test_defaults(self):
        assert default_value(parse_type("u64")) == "0"
        assert default_value(parse_type("string")) == '""'
        assert default_value(parse_type("list<u8>")) == "dataclasses.field(default_factory=list)"
        assert default_value(parse_type("optional<cid>")) == "None"
        assert default_value(parse_type("Inner")) == "dataclasses.field(default_factory=Inner)"

    def test_convert_scalar(self):
        assert convert_expr(parse_type("u32"), "x", decode=False) == "check_uint(x, 32)"
        assert convert_expr(parse_type("i16"), "x", decode=True) == "check_int(x, 16)"

    def test_convert_record(self):
        assert convert_expr(parse_type("Inner"), "x", decode=False) == "record_to_tuple(x, Inner)"
        assert convert_expr(parse_type("Inner"), "x", decode=True) == "Inner.from_tuple(x)"

    def test_convert_nested(self):
        expr = convert_expr(parse_type("map<string, list<u8>>"), "x", decode=True)
        assert expr == "convert_map(x, lambda k: check_str(k), lambda v: convert_list(v, lambda v: check_uint(v, 8)))"


class TestAbortEmitter:

    def test_plain_message(self):
        assert emit_abort("USR_ILLEGAL_STATE", "state root not set", 1) == \
            '    abort(ExitCode.USR_ILLEGAL_STATE, "state root not set")'

    def test_with_error(self):
        assert emit_abort("USR_SERIALIZATION", "failed to store state", 0, "err") == \
            'abort(ExitCode.USR_SERIALIZATION, f"failed to store state: {err}")'

    def test_placeholder_makes_fstring(self):
        line = emit_abort("USR_UNHANDLED_MESSAGE", "unrecognized method {method_id}", 0)
        assert line == 'abort(ExitCode.USR_UNHANDLED_MESSAGE, f"unrecognized method {method_id}")'


# =============================================================================
# Generated records
# =============================================================================

class TestGeneratedRecords:

    def test_defaults(self, greeter):
        state = greeter.State()
        assert state.count == 0
        assert state.names == []
        assert state.scores == {}
        assert state.nickname is None
        assert state.inner == greeter.Inner(flag=False)
        assert state.anchor is None
        assert state.blob == b""

    def test_defaults_not_shared(self, greeter):
        a, b = greeter.State(), greeter.State()
        a.names.append("x")
        assert b.names == []

    def test_round_trip(self, greeter):
        state = greeter.State(
            count=3,
            names=["a", "b"],
            scores={"a": -5},
            nickname="al",
            inner=greeter.Inner(flag=True),
            anchor=Cid.compute(DAG_CBOR, BLAKE2B_256, b"x"),
            blob=b"\x00\x01",
        )
        assert greeter.State.from_tuple(from_slice(to_vec(state.to_tuple()))) == state

    def test_field_order_encoding(self, greeter):
        encoded = greeter.State(count=1).to_tuple()
        assert encoded == [1, [], {}, None, [False], None, b""]

    def test_range_checked(self, greeter):
        with pytest.raises(greeter.CodecError):
            greeter.State(scores={"a": 40000}).to_tuple()

    def test_embedded_record_defined_first(self, greeter_manifest):
        from actor_loader import load_manifest_ast
        schema = load_manifest_ast(greeter_manifest())
        assert [r.name for r in ordered_records(schema)] == ["Inner", "State"]


# =============================================================================
# Generated dispatch
# =============================================================================

class TestGeneratedDispatch:

    def test_method_table(self, greeter):
        assert greeter.METHODS == {1: "constructor", 2: "greet", 3: "silent", 4: "snapshot"}

    def test_typed_params_and_return(self, greeter):
        machine = Machine()
        actor_id = machine.install(greeter)
        assert machine.send(actor_id, 1).ok

        receipt = machine.send(actor_id, 2, params=to_vec("Ada"))
        assert receipt.ok
        assert receipt.decode() == "Hi Ada"
        state = greeter.State.from_tuple(machine.load_state(actor_id))
        assert state.names == ["Ada"]

    def test_cid_field_survives_save_and_load(self, greeter):
        machine = Machine()
        actor_id = machine.install(greeter)
        assert machine.send(actor_id, 1).ok
        assert machine.send(actor_id, 2, params=to_vec("Ada")).ok

        # The second message loads the state saved with the anchor set
        receipt = machine.send(actor_id, 2, params=to_vec("Bo"))
        assert receipt.ok, receipt.message
        state = greeter.State.from_tuple(machine.load_state(actor_id))
        assert state.names == ["Ada", "Bo"]
        assert state.anchor == Cid.compute(RAW, BLAKE2B_256, b"Bo")

    def test_bad_params(self, greeter):
        machine = Machine()
        actor_id = machine.install(greeter)
        machine.send(actor_id, 1)
        receipt = machine.send(actor_id, 2, params=to_vec(42))
        assert receipt.exit_code == ExitCode.USR_SERIALIZATION
        assert receipt.message == "failed to decode params for greet: expected string, got int"

    def test_none_result_is_no_data(self, greeter):
        machine = Machine()
        actor_id = machine.install(greeter)
        machine.send(actor_id, 1)
        receipt = machine.send(actor_id, 3)
        assert receipt.ok
        assert receipt.return_data is None

    def test_record_return(self, greeter):
        machine = Machine()
        actor_id = machine.install(greeter)
        machine.send(actor_id, 1)
        receipt = machine.send(actor_id, 4)
        assert greeter.State.from_tuple(receipt.decode()) == greeter.State()

    def test_unknown_method(self, greeter):
        machine = Machine()
        actor_id = machine.install(greeter)
        receipt = machine.send(actor_id, 5)
        assert receipt.exit_code == ExitCode.USR_UNHANDLED_MESSAGE

    def test_no_invoke_entrypoint(self, greeter_manifest, monkeypatch):
        source = generate_python(greeter_manifest(invoke="false"), use_lock=False)
        module = load_generated(source, "greeter_library_generated", monkeypatch)
        assert hasattr(module, "dispatch")
        assert not hasattr(module, "invoke")


# =============================================================================
# Build-time failures
# =============================================================================

class TestBuildFailures:

    def test_validation_error(self, tmp_path):
        manifest = tmp_path / "bad.actor"
        manifest.write_text('''
record State ( root cid )
actor A ( state State implementation a constructor constructor() )
''')
        with pytest.raises(ValueError, match="no default value"):
            generate_python(manifest, use_lock=False)

    def test_constructor_not_first(self, tmp_path):
        manifest = tmp_path / "bad.actor"
        manifest.write_text('''
record State ( count u64 )
actor A ( state State implementation a method ping() constructor constructor() )
''')
        with pytest.raises(ValueError, match="constructor"):
            generate_python(manifest, use_lock=False)

    def test_one_actor_per_manifest(self, tmp_path):
        manifest = tmp_path / "two.actor"
        manifest.write_text('''
record State ( count u64 )
actor A ( state State implementation a constructor constructor() )
actor B ( state State implementation b constructor constructor() )
''')
        with pytest.raises(ValueError, match="exactly one actor"):
            generate_python(manifest, use_lock=False)


# =============================================================================
# Numbering lock
# =============================================================================

def write_counter(path: Path, *methods: str):
    body = "\n".join(f"    method {m}()" for m in methods)
    path.write_text(f'''
record State ( count u64 )
actor Counter (
    state State
    implementation counter
    constructor constructor()
{body}
)
''')


class TestNumberingLock:

    def test_first_generation_writes_lock(self, tmp_path):
        manifest = tmp_path / "counter.actor"
        write_counter(manifest, "increment", "reset")
        generate_python(manifest)
        assert read_lock(tmp_path / "counter.lock", "Counter") == {
            1: "constructor", 2: "increment", 3: "reset",
        }

    def test_reorder_fails(self, tmp_path):
        manifest = tmp_path / "counter.actor"
        write_counter(manifest, "increment", "reset")
        generate_python(manifest)

        write_counter(manifest, "reset", "increment")
        with pytest.raises(MethodTableError, match="method 2 changed from 'increment' to 'reset'"):
            generate_python(manifest)

    def test_update_lock_accepts_reorder(self, tmp_path):
        manifest = tmp_path / "counter.actor"
        write_counter(manifest, "increment", "reset")
        generate_python(manifest)

        write_counter(manifest, "reset", "increment")
        generate_python(manifest, update_lock=True)
        assert read_lock(tmp_path / "counter.lock", "Counter")[2] == "reset"

    def test_append_extends_lock(self, tmp_path):
        manifest = tmp_path / "counter.actor"
        write_counter(manifest, "increment")
        generate_python(manifest)

        write_counter(manifest, "increment", "reset")
        generate_python(manifest)
        assert read_lock(tmp_path / "counter.lock", "Counter")[3] == "reset"

    def test_no_lock(self, tmp_path):
        manifest = tmp_path / "counter.actor"
        write_counter(manifest, "increment")
        generate_python(manifest, use_lock=False)
        assert not (tmp_path / "counter.lock").exists()


# =============================================================================
# Checked-in examples and documentation
# =============================================================================

class TestExamples:

    @pytest.mark.parametrize("manifest", ["hello_world.actor", "ledger.yaml"])
    def test_checked_in_code_is_current(self, manifest):
        path = ACTORS_DIR / manifest
        generated = ACTORS_DIR / f"{path.stem}_generated.py"
        assert generate_python(path, use_lock=False) == generated.read_text()

    @pytest.mark.parametrize("manifest", ["hello_world.actor", "ledger.yaml"])
    def test_checked_in_lock_is_current(self, manifest):
        from actor_loader import load_manifest_ast
        from method_table import build_method_table, lock_path_for

        path = ACTORS_DIR / manifest
        actor = load_manifest_ast(path).actors[0]
        table = build_method_table(actor)
        assert read_lock(lock_path_for(path), actor.name) == table.as_dict()

    def test_markdown(self):
        text = generate_markdown(ACTORS_DIR / "hello_world.actor")
        assert text.startswith("# HelloWorldActor")
        assert "| count | `u64` |" in text
        assert "| 1 | constructor (constructor) | `RawBytes` | - |" in text
        assert "| 2 | say_hello | `RawBytes` | `string` |" in text

    def test_cli_writes_outputs(self, tmp_path):
        result = subprocess.run(
            [
                sys.executable,
                str(SCRIPTS_DIR / "generate_actor.py"),
                str(ACTORS_DIR / "hello_world.actor"),
                "--python", "--markdown", "--no-lock",
                "--output-dir", str(tmp_path),
            ],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0, result.stderr
        assert (tmp_path / "hello_world_generated.py").exists()
        assert (tmp_path / "hello_world.md").exists()
        assert "Generated:" in result.stdout

    def test_cli_reports_errors(self, tmp_path):
        manifest = tmp_path / "bad.actor"
        manifest.write_text("record State ( root cid )\n")
        result = subprocess.run(
            [sys.executable, str(SCRIPTS_DIR / "generate_actor.py"), str(manifest), "--python"],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 1
        assert "Error:" in result.stderr

    def test_cli_reports_malformed_yaml(self, tmp_path):
        manifest = tmp_path / "broken.yaml"
        manifest.write_text("actor: {name: A\n  methods: [\n")
        result = subprocess.run(
            [sys.executable, str(SCRIPTS_DIR / "generate_actor.py"), str(manifest), "--python"],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 1
        assert result.stderr.startswith(f"Error: {manifest}: invalid YAML: ")
        assert "Traceback" not in result.stderr
