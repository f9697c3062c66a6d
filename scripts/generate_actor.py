#!/usr/bin/env python3
"""
Generate dispatch and persistence code from actor manifests.

Usage:
    python generate_actor.py <manifest> [--python] [--markdown] [--output-dir <dir>]
                             [--update-lock] [--no-lock]

Example:
    python generate_actor.py hostsim/actors/hello_world.actor --python
    python generate_actor.py hostsim/actors/ledger.yaml --python --markdown --output-dir build
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Set

import yaml
from lark.exceptions import UnexpectedInput

from actor_loader import load_manifest_ast
from actor_ast import (
    Schema, ActorDecl, RecordDecl, MethodDecl,
    SimpleType, ListType, MapType, OptionalType, TypeExpr,
    RAW_BYTES, type_to_str,
)
from actor_validate import validate_and_report, INT_TYPES
from method_table import (
    MethodTable, build_method_table, check_lock, lock_path_for, read_lock, write_lock,
)


# Hash function, digest size and codec used for every state record
STATE_HASH_CODE = "BLAKE2B_256"
STATE_HASH_SIZE = 32
STATE_CODEC = "DAG_CBOR"

# Codec of return-value blocks handed back to the host
RETURN_CODEC = "DAG_CBOR"

SECTION_RULE = "# ============================================================================="


def load_manifest(manifest_path: Path) -> Schema:
    """Load and validate a manifest. Raises ValueError on validation errors."""
    manifest_path = Path(manifest_path)
    if not manifest_path.exists():
        raise FileNotFoundError(f"Manifest not found: {manifest_path}")

    schema = load_manifest_ast(manifest_path)
    result = validate_and_report(schema)
    for warning in result.warnings:
        loc = f":{warning.line}" if warning.line else ""
        print(f"{manifest_path}{loc}: warning: {warning.message}")
    return schema


def single_actor(schema: Schema, manifest_path: Path) -> ActorDecl:
    """Generated modules hold exactly one actor's dispatch entrypoint."""
    if len(schema.actors) != 1:
        names = ", ".join(a.name for a in schema.actors) or "none"
        raise ValueError(
            f"{manifest_path}: expected exactly one actor per manifest, found {names}"
        )
    return schema.actors[0]


# =============================================================================
# TYPE TRANSLATION
# =============================================================================

def python_type(type_expr: TypeExpr) -> str:
    """Convert manifest type to Python type hint."""
    type_map = {
        "bool": "bool",
        "string": "str",
        "bytes": "bytes",
        "cid": "Cid",
        RAW_BYTES: "RawBytes",
    }

    if isinstance(type_expr, ListType):
        return f"List[{python_type(type_expr.element_type)}]"
    if isinstance(type_expr, MapType):
        return f"Dict[{python_type(type_expr.key_type)}, {python_type(type_expr.value_type)}]"
    if isinstance(type_expr, OptionalType):
        return f"Optional[{python_type(type_expr.inner_type)}]"

    name = type_expr.name
    if name in INT_TYPES:
        return "int"
    # Records keep their own name
    return type_map.get(name, name)


def referenced_records(type_expr: TypeExpr, records: Set[str]) -> Set[str]:
    """Record names mentioned anywhere in a type."""
    if isinstance(type_expr, ListType):
        return referenced_records(type_expr.element_type, records)
    if isinstance(type_expr, MapType):
        return referenced_records(type_expr.key_type, records) | referenced_records(type_expr.value_type, records)
    if isinstance(type_expr, OptionalType):
        return referenced_records(type_expr.inner_type, records)
    return {type_expr.name} & records


def field_annotation(type_expr: TypeExpr, records: Set[str]) -> str:
    """Annotation for a dataclass field; quoted when it names a record."""
    hint = python_type(type_expr)
    if referenced_records(type_expr, records):
        return f"'{hint}'"
    return hint


def default_value(type_expr: TypeExpr) -> str:
    """Default value expression for a dataclass field."""
    if isinstance(type_expr, ListType):
        return "dataclasses.field(default_factory=list)"
    if isinstance(type_expr, MapType):
        return "dataclasses.field(default_factory=dict)"
    if isinstance(type_expr, OptionalType):
        return "None"

    name = type_expr.name
    if name in INT_TYPES:
        return "0"
    defaults = {
        "bool": "False",
        "string": '""',
        "bytes": 'b""',
    }
    if name in defaults:
        return defaults[name]
    return f"dataclasses.field(default_factory={name})"


def convert_expr(type_expr: TypeExpr, value: str, decode: bool) -> str:
    """Expression converting value to (decode=False) or from its encoded form."""
    if isinstance(type_expr, ListType):
        inner = convert_expr(type_expr.element_type, "v", decode)
        return f"convert_list({value}, lambda v: {inner})"
    if isinstance(type_expr, MapType):
        key = convert_expr(type_expr.key_type, "k", decode)
        val = convert_expr(type_expr.value_type, "v", decode)
        return f"convert_map({value}, lambda k: {key}, lambda v: {val})"
    if isinstance(type_expr, OptionalType):
        inner = convert_expr(type_expr.inner_type, "v", decode)
        return f"convert_optional({value}, lambda v: {inner})"

    name = type_expr.name
    if name in INT_TYPES:
        bits, signed = INT_TYPES[name]
        helper = "check_int" if signed else "check_uint"
        return f"{helper}({value}, {bits})"
    checks = {
        "bool": "check_bool",
        "string": "check_str",
        "bytes": "check_bytes",
        "cid": "check_cid",
    }
    if name in checks:
        return f"{checks[name]}({value})"
    # Record
    if decode:
        return f"{name}.from_tuple({value})"
    return f"record_to_tuple({value}, {name})"


def ordered_records(schema: Schema) -> List[RecordDecl]:
    """Records ordered so that every embedded record is defined first."""
    by_name = {r.name: r for r in schema.records}
    ordered: List[RecordDecl] = []
    visited: Set[str] = set()

    def visit(record: RecordDecl):
        if record.name in visited:
            return
        visited.add(record.name)
        for f in record.fields:
            if isinstance(f.type, SimpleType) and f.type.name in by_name:
                visit(by_name[f.type.name])
        ordered.append(record)

    for record in schema.records:
        visit(record)
    return ordered


# =============================================================================
# ABORT / ERROR EMITTER
# =============================================================================

def docstring_text(text: str) -> str:
    """Escape free text for use inside a triple-quoted docstring."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def emit_abort(kind: str, message: str, indent_level: int, err_var: Optional[str] = None) -> str:
    """Emit an abort call carrying an exit code and diagnostic message."""
    ind = "    " * indent_level
    text = f"{message}: {{{err_var}}}" if err_var else message
    prefix = "f" if "{" in text else ""
    return f'{ind}abort(ExitCode.{kind}, {prefix}"{text}")'


def emit_guarded(body: List[str], exc_type: str, kind: str, message: str, indent_level: int) -> List[str]:
    """Wrap body in try/except that turns exc_type into an abort."""
    ind = "    " * indent_level
    lines = [f"{ind}try:"]
    lines.extend(f"{ind}    {line}" for line in body)
    lines.append(f"{ind}except {exc_type} as err:")
    lines.append(emit_abort(kind, message, indent_level + 1, "err"))
    return lines


# =============================================================================
# RECORDS AND STATE PERSISTENCE
# =============================================================================

class PythonRecordGenerator:
    """Generate a record dataclass, with load/save when it is an actor's state."""

    def __init__(self, record: RecordDecl, schema: Schema, is_state: bool = False):
        self.record = record
        self.schema = schema
        self.is_state = is_state
        self.record_names = {r.name for r in schema.records}

    def generate(self) -> str:
        name = self.record.name
        lines = ["@dataclass", f"class {name}:"]
        if self.record.description:
            lines.append(f'    """{docstring_text(self.record.description)}"""')
            lines.append("")

        for f in self.record.fields:
            annotation = field_annotation(f.type, self.record_names)
            lines.append(f"    {f.name}: {annotation} = {default_value(f.type)}")
        if self.record.fields:
            lines.append("")

        lines.extend(self._generate_to_tuple())
        lines.append("")
        lines.extend(self._generate_from_tuple())
        lines.append("")
        lines.append(f"    def clone(self) -> '{name}':")
        lines.append("        return copy.deepcopy(self)")

        if self.is_state:
            lines.append("")
            lines.extend(self._generate_load())
            lines.append("")
            lines.extend(self._generate_save())

        return "\n".join(lines)

    def _generate_to_tuple(self) -> List[str]:
        lines = ["    def to_tuple(self) -> List[Any]:"]
        if not self.record.fields:
            lines.append("        return []")
            return lines
        lines.append("        return [")
        for f in self.record.fields:
            lines.append(f"            {convert_expr(f.type, f'self.{f.name}', decode=False)},")
        lines.append("        ]")
        return lines

    def _generate_from_tuple(self) -> List[str]:
        name = self.record.name
        lines = [
            "    @classmethod",
            f"    def from_tuple(cls, value: Any) -> '{name}':",
        ]
        if not self.record.fields:
            lines.append(f'        expect_tuple(value, 0, "{name}")')
            lines.append("        return cls()")
            return lines
        lines.append(f'        fields = expect_tuple(value, {len(self.record.fields)}, "{name}")')
        lines.append("        return cls(")
        for i, f in enumerate(self.record.fields):
            lines.append(f"            {f.name}={convert_expr(f.type, f'fields[{i}]', decode=True)},")
        lines.append("        )")
        return lines

    def _generate_load(self) -> List[str]:
        name = self.record.name
        lines = [
            "    @classmethod",
            f"    def load(cls, ctx: InvocationContext) -> '{name}':",
            f'        """Load the {name} addressed by the actor\'s state root."""',
        ]
        lines.extend(emit_guarded(
            ["root = ctx.root()"], "HostError", "USR_ILLEGAL_STATE", "failed to get root", 2
        ))
        lines.append("        if root is None:")
        lines.append(emit_abort("USR_ILLEGAL_STATE", "state root not set", 3))
        lines.extend(emit_guarded(
            ["data = ctx.ipld_get(root)"], "HostError", "USR_ILLEGAL_STATE", "failed to get state", 2
        ))
        lines.append("        if data is None:")
        lines.append(emit_abort("USR_ILLEGAL_STATE", "state does not exist", 3))
        lines.extend(emit_guarded(
            ["return cls.from_tuple(from_slice(data))"],
            "CodecError", "USR_ILLEGAL_STATE", "failed to decode state", 2
        ))
        return lines

    def _generate_save(self) -> List[str]:
        name = self.record.name
        lines = [
            "    def save(self, ctx: InvocationContext) -> Cid:",
            f'        """Store this {name} and point the actor\'s state root at it."""',
        ]
        lines.extend(emit_guarded(
            ["serialized = to_vec(self.to_tuple())"],
            "CodecError", "USR_SERIALIZATION", "failed to serialize state", 2
        ))
        lines.extend(emit_guarded(
            ["cid = ctx.ipld_put(STATE_HASH_CODE, STATE_HASH_SIZE, STATE_CODEC, serialized)"],
            "HostError", "USR_SERIALIZATION", "failed to store state", 2
        ))
        lines.extend(emit_guarded(
            ["ctx.set_root(cid)"], "HostError", "USR_ILLEGAL_STATE", "failed to set root cid", 2
        ))
        lines.append("        return cid")
        return lines


def generate_records_python(schema: Schema, state_records: Set[str]) -> str:
    """Generate every record class, dependencies first."""
    lines = [SECTION_RULE, "# Records", SECTION_RULE, ""]
    for record in ordered_records(schema):
        generator = PythonRecordGenerator(record, schema, is_state=record.name in state_records)
        lines.append(generator.generate())
        lines.append("")
        lines.append("")
    return "\n".join(lines)


# =============================================================================
# DISPATCH
# =============================================================================

def method_constant(method: MethodDecl) -> str:
    return f"METHOD_{method.name.upper()}"


class PythonDispatchGenerator:
    """Generate the method table, dispatch function and host entrypoint."""

    def __init__(self, actor: ActorDecl, table: MethodTable, schema: Schema):
        self.actor = actor
        self.table = table
        self.schema = schema
        self.state = actor.state

    def generate(self) -> str:
        lines = []
        lines.extend(self._generate_method_table())
        lines.append("")
        lines.append("")
        lines.append(SECTION_RULE)
        lines.append("# Dispatch")
        lines.append(SECTION_RULE)
        lines.append("")
        lines.extend(self._generate_load_state())
        lines.append("")
        lines.append("")
        lines.extend(self._generate_dispatch())
        if self.actor.invoke:
            lines.append("")
            lines.append("")
            lines.extend(self._generate_invoke())
        lines.append("")
        return "\n".join(lines)

    def _generate_method_table(self) -> List[str]:
        lines = [SECTION_RULE, "# Method Table", SECTION_RULE, ""]
        for entry in self.table:
            lines.append(f"{method_constant(entry.method)} = {entry.id}")
        lines.append("")
        lines.append("METHODS: Dict[int, str] = {")
        for entry in self.table:
            lines.append(f'    {method_constant(entry.method)}: "{entry.name}",')
        lines.append("}")
        return lines

    def _generate_load_state(self) -> List[str]:
        constructor = method_constant(self.table.constructor.method)
        return [
            f"def load_state(ctx: InvocationContext, method_id: int) -> {self.state}:",
            f'    """Constructor calls start from a default {self.state}; all others load it."""',
            f"    if method_id == {constructor}:",
            f"        return {self.state}()",
            f"    return {self.state}.load(ctx)",
        ]

    def _generate_dispatch(self) -> List[str]:
        lines = [
            "def dispatch(ctx: InvocationContext, method_id: int) -> int:",
            f'    """Run one message against {self.actor.name}; returns the return block id."""',
            "    if method_id not in METHODS:",
            emit_abort("USR_UNHANDLED_MESSAGE", "unrecognized method {method_id}", 2),
            "",
            "    state = load_state(ctx, method_id)",
        ]
        lines.extend(emit_guarded(
            ["raw = ctx.params_raw(method_id)"], "HostError", "USR_SERIALIZATION", "failed to read params", 1
        ))
        lines.append("")
        lines.append(f"    actor = {self.actor.name}(ctx)")
        lines.append("    ret: Optional[bytes] = None")
        lines.append("")

        for entry in self.table:
            keyword = "if" if entry.is_constructor else "elif"
            lines.append(f"    {keyword} method_id == {method_constant(entry.method)}:")
            lines.extend(self._generate_arm(entry.method))

        lines.append("")
        lines.append("    if ret is None:")
        lines.append("        return NO_DATA_BLOCK_ID")
        lines.extend(emit_guarded(
            ["return ctx.put_block(RETURN_CODEC, ret)"],
            "HostError", "USR_SERIALIZATION", "failed to store return value", 1
        ))
        return lines

    def _generate_arm(self, method: MethodDecl) -> List[str]:
        lines = []
        params = method.params
        if isinstance(params, SimpleType) and params.name == RAW_BYTES:
            lines.append("        params = RawBytes(raw)")
        else:
            lines.extend(emit_guarded(
                [f"params = {convert_expr(params, 'from_slice(raw)', decode=True)}"],
                "CodecError", "USR_SERIALIZATION", f"failed to decode params for {method.name}", 2
            ))

        call = f"actor.{method.name}(params, state)"
        if not method.returns_payload:
            lines.append(f"        {call}")
            return lines

        ret_type = method.return_type
        if isinstance(ret_type, SimpleType) and ret_type.name == RAW_BYTES:
            encode = "ret = raw_bytes_of(result)"
        else:
            encode = f"ret = to_vec({convert_expr(ret_type, 'result', decode=False)})"

        lines.append(f"        result = {call}")
        lines.append("        if result is not None:")
        lines.extend(emit_guarded(
            [encode], "CodecError", "USR_SERIALIZATION", "failed to serialize return value", 3
        ))
        return lines

    def _generate_invoke(self) -> List[str]:
        return [
            "def invoke(ctx: InvocationContext, method_id: int) -> int:",
            '    """Host entrypoint."""',
            "    return dispatch(ctx, method_id)",
        ]


# =============================================================================
# PYTHON CODE GENERATION
# =============================================================================

def sync_lock(manifest_path: Path, table: MethodTable, update_lock: bool = False):
    """Check the method numbers against the lock file, then record them."""
    lock_path = lock_path_for(manifest_path)
    locked = read_lock(lock_path, table.actor)
    if not update_lock:
        check_lock(table, locked)
    if locked != table.as_dict():
        write_lock(lock_path, [table])
        print(f"Updated lock: {lock_path}")


def generate_python(
    manifest_path: Path,
    output_path: Path = None,
    update_lock: bool = False,
    use_lock: bool = True,
) -> str:
    """Generate Python code from an actor manifest."""
    manifest_path = Path(manifest_path)
    schema = load_manifest(manifest_path)
    actor = single_actor(schema, manifest_path)
    table = build_method_table(actor)

    if use_lock:
        sync_lock(manifest_path, table, update_lock=update_lock)

    lines = ['"""']
    lines.append(f"Actor {actor.name}")
    if actor.description:
        lines.append("")
        lines.append(docstring_text(actor.description))
    lines.append("")
    lines.append(f"GENERATED FROM {manifest_path.name}")
    lines.append('"""')
    lines.append("")
    lines.append("import copy")
    lines.append("import dataclasses")
    lines.append("from dataclasses import dataclass")
    lines.append("from typing import Any, Dict, List, Optional")
    lines.append("")
    lines.append("from hostsim.codec import (")
    lines.append("    CodecError, RawBytes, to_vec, from_slice,")
    lines.append("    check_uint, check_int, check_bool, check_str, check_bytes, check_cid,")
    lines.append("    convert_list, convert_map, convert_optional,")
    lines.append("    record_to_tuple, expect_tuple, raw_bytes_of,")
    lines.append(")")
    lines.append("from hostsim.context import InvocationContext")
    lines.append("from hostsim.errors import ExitCode, HostError, abort")
    lines.append("from hostsim.primitives import Cid, BLAKE2B_256, DAG_CBOR, NO_DATA_BLOCK_ID")
    lines.append("")
    lines.append(f"from {actor.implementation} import {actor.name}")
    lines.append("")
    lines.append("")
    lines.append(SECTION_RULE)
    lines.append("# Parameters")
    lines.append(SECTION_RULE)
    lines.append("")
    lines.append(f"STATE_HASH_CODE = {STATE_HASH_CODE}")
    lines.append(f"STATE_HASH_SIZE = {STATE_HASH_SIZE}")
    lines.append(f"STATE_CODEC = {STATE_CODEC}")
    lines.append(f"RETURN_CODEC = {RETURN_CODEC}")
    lines.append("")
    lines.append("")

    # Records
    lines.append(generate_records_python(schema, {actor.state}))

    # Method table and dispatch
    lines.append(PythonDispatchGenerator(actor, table, schema).generate())

    result = "\n".join(lines)

    if output_path:
        with open(output_path, "w") as f:
            f.write(result)
        print(f"Generated: {output_path}")

    return result


# =============================================================================
# MARKDOWN GENERATION
# =============================================================================

def generate_record_markdown(record: RecordDecl, heading: str) -> str:
    """Generate a record's field table."""
    lines = [f"## {heading}\n"]
    if record.description:
        lines.append(f"{record.description}\n")
    if not record.fields:
        lines.append("No fields.\n")
        return "\n".join(lines)
    lines.append("| Field | Type |")
    lines.append("|-------|------|")
    for f in record.fields:
        lines.append(f"| {f.name} | `{type_to_str(f.type)}` |")
    lines.append("")
    return "\n".join(lines)


def generate_method_table_markdown(table: MethodTable) -> str:
    """Generate the method number table."""
    lines = ["## Methods\n"]
    lines.append("| Id | Method | Params | Returns |")
    lines.append("|----|--------|--------|---------|")
    for entry in table:
        name = f"{entry.name} (constructor)" if entry.is_constructor else entry.name
        returns = f"`{type_to_str(entry.method.return_type)}`" if entry.method.returns_payload else "-"
        lines.append(f"| {entry.id} | {name} | `{type_to_str(entry.method.params)}` | {returns} |")
    lines.append("")
    lines.append("Method numbers follow declaration order; reordering methods breaks callers.")
    lines.append("")
    return "\n".join(lines)


def generate_markdown(manifest_path: Path, output_path: Path = None) -> str:
    """Generate markdown documentation from an actor manifest."""
    manifest_path = Path(manifest_path)
    schema = load_manifest(manifest_path)
    actor = single_actor(schema, manifest_path)
    table = build_method_table(actor)

    parts = [f"# {actor.name}\n"]
    if actor.description:
        parts.append(f"{actor.description}\n")
    parts.append(f"Implementation: `{actor.implementation}.{actor.name}`\n")

    state = schema.get_record(actor.state)
    parts.append(generate_record_markdown(state, f"State: {state.name}"))
    parts.append(generate_method_table_markdown(table))

    others = [r for r in schema.records if r.name != actor.state]
    for record in others:
        parts.append(generate_record_markdown(record, f"Record: {record.name}"))

    result = "\n".join(parts)

    if output_path:
        with open(output_path, "w") as f:
            f.write(result)
        print(f"Generated: {output_path}")

    return result


# =============================================================================
# MAIN
# =============================================================================

def main():
    parser = argparse.ArgumentParser(
        description="Generate dispatch and persistence code from actor manifests"
    )
    parser.add_argument("manifest", help="Actor manifest (.actor or .yaml)")
    parser.add_argument("--markdown", action="store_true", help="Generate markdown documentation")
    parser.add_argument("--python", action="store_true", help="Generate Python code")
    parser.add_argument("--output-dir", help="Output directory (defaults to the manifest's directory)")
    parser.add_argument("--update-lock", action="store_true",
                        help="Accept changed method numbers and rewrite the lock file")
    parser.add_argument("--no-lock", action="store_true", help="Skip the method number lock check")

    args = parser.parse_args()

    manifest_path = Path(args.manifest)
    if not manifest_path.exists():
        print(f"Error: Manifest not found: {manifest_path}", file=sys.stderr)
        sys.exit(1)

    if not args.markdown and not args.python:
        print("Specify --markdown and/or --python to generate output")
        sys.exit(1)

    output_dir = Path(args.output_dir) if args.output_dir else manifest_path.parent
    stem = manifest_path.stem

    try:
        if args.python:
            generate_python(
                manifest_path,
                output_dir / f"{stem}_generated.py",
                update_lock=args.update_lock,
                use_lock=not args.no_lock,
            )
        if args.markdown:
            generate_markdown(manifest_path, output_dir / f"{stem}.md")
    except UnexpectedInput as e:
        print(f"Error: {manifest_path}: parse error: {e}", file=sys.stderr)
        sys.exit(1)
    except yaml.YAMLError as e:
        print(f"Error: {manifest_path}: invalid YAML: {e}", file=sys.stderr)
        sys.exit(1)
    except (ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
