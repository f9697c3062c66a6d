"""
Semantic validation for actor manifest ASTs.

These checks run after parsing but before code generation to catch
errors that the grammar can't express. Every error here is a build-time
failure: nothing is left to be discovered by a runtime abort.
"""

import keyword
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from actor_ast import (
    Schema, ActorDecl, RecordDecl, MethodDecl,
    SimpleType, ListType, MapType, OptionalType, TypeExpr,
    RAW_BYTES, type_to_str,
)
from method_table import method_table_errors


@dataclass
class ValidationError:
    """A validation error with location info."""
    message: str
    line: int = 0
    column: int = 0
    severity: str = "error"  # "error" or "warning"

    def __str__(self):
        loc = f"line {self.line}" if self.line else "unknown location"
        return f"[{self.severity}] {loc}: {self.message}"


@dataclass
class ValidationResult:
    """Result of validation."""
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[ValidationError] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def add_error(self, message: str, line: int = 0, column: int = 0):
        self.errors.append(ValidationError(message, line, column, "error"))

    def add_warning(self, message: str, line: int = 0, column: int = 0):
        self.warnings.append(ValidationError(message, line, column, "warning"))

    def merge(self, other: 'ValidationResult'):
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def __str__(self):
        lines = []
        for err in self.errors:
            lines.append(str(err))
        for warn in self.warnings:
            lines.append(str(warn))
        return "\n".join(lines)


# =============================================================================
# Codec types
# =============================================================================

# name -> (bits, signed)
INT_TYPES = {
    "u8": (8, False),
    "u16": (16, False),
    "u32": (32, False),
    "u64": (64, False),
    "i8": (8, True),
    "i16": (16, True),
    "i32": (32, True),
    "i64": (64, True),
}

SCALAR_TYPES = set(INT_TYPES) | {"bool", "string", "bytes", "cid"}

# Types without a default value
NO_DEFAULT_TYPES = {"cid"}

# Names the generated module imports or defines itself
RESERVED_NAMES = {
    "Any", "Dict", "List", "Optional", "Cid", "RawBytes", "CodecError",
    "ExitCode", "HostError", "InvocationContext", "METHODS",
    "abort", "dispatch", "invoke", "load_state", "dataclass", "dataclasses", "copy",
}

# Attributes of generated record classes
RESERVED_FIELD_NAMES = {"dataclasses", "to_tuple", "from_tuple", "clone", "load", "save"}

# Builtins looked up while a generated record class body is evaluated
CLASS_BODY_BUILTINS = {"int", "str", "bool", "bytes", "list", "dict", "classmethod"}


# =============================================================================
# Schema Context for Validation
# =============================================================================

@dataclass
class SchemaContext:
    """Context for validation containing all schema-level definitions."""
    records: Dict[str, RecordDecl] = field(default_factory=dict)
    actor_names: Set[str] = field(default_factory=set)

    @classmethod
    def from_schema(cls, schema: Schema) -> 'SchemaContext':
        ctx = cls()
        for record in schema.records:
            ctx.records.setdefault(record.name, record)
        ctx.actor_names = {a.name for a in schema.actors}
        return ctx


# =============================================================================
# Main Validation Entry Points
# =============================================================================

def validate_schema(schema: Schema) -> ValidationResult:
    """Run all validations on a schema."""
    result = ValidationResult()
    ctx = SchemaContext.from_schema(schema)

    seen = set()
    for record in schema.records:
        if record.name in seen:
            result.add_error(f"Duplicate record '{record.name}'", record.line)
        seen.add(record.name)
        result.merge(validate_record(record, ctx))

    seen = set()
    for actor in schema.actors:
        if actor.name in seen:
            result.add_error(f"Duplicate actor '{actor.name}'", actor.line)
        seen.add(actor.name)
        result.merge(validate_actor(actor, ctx))

    return result


def validate_and_report(schema: Schema, raise_on_error: bool = True) -> ValidationResult:
    """
    Validate a schema and optionally raise on errors.

    Args:
        schema: The schema to validate
        raise_on_error: If True, raise ValueError on validation errors

    Returns:
        ValidationResult with all errors and warnings
    """
    result = validate_schema(schema)

    if result.has_errors and raise_on_error:
        raise ValueError(f"Manifest validation failed:\n{result}")

    return result


def _check_identifier(name: str, what: str, result: ValidationResult, line: int = 0):
    if not name.isidentifier() or keyword.iskeyword(name):
        result.add_error(f"{what} '{name}' is not a usable Python identifier", line)


# =============================================================================
# Type Validation
# =============================================================================

def type_errors(type_expr: TypeExpr, ctx: SchemaContext, where: str, allow_raw: bool = False) -> List[str]:
    """Check that a type is known to the codec."""
    if isinstance(type_expr, SimpleType):
        name = type_expr.name
        if name == RAW_BYTES:
            if allow_raw:
                return []
            return [f"{where}: RawBytes is only allowed as a method parameter or return type; use 'bytes'"]
        if name in SCALAR_TYPES or name in ctx.records:
            return []
        return [f"{where}: unknown type '{name}'"]
    if isinstance(type_expr, ListType):
        return type_errors(type_expr.element_type, ctx, where)
    if isinstance(type_expr, OptionalType):
        return type_errors(type_expr.inner_type, ctx, where)
    if isinstance(type_expr, MapType):
        errors = []
        key = type_expr.key_type
        if not (isinstance(key, SimpleType) and (key.name == "string" or key.name in INT_TYPES)):
            errors.append(f"{where}: map keys must be 'string' or an integer type, got '{type_to_str(key)}'")
        errors.extend(type_errors(type_expr.value_type, ctx, where))
        return errors
    return [f"{where}: unsupported type '{type_to_str(type_expr)}'"]


def is_default_constructible(type_expr: TypeExpr, ctx: SchemaContext) -> bool:
    """Whether a field of this type has a default value."""
    if isinstance(type_expr, SimpleType):
        return type_expr.name not in NO_DEFAULT_TYPES
    # Containers and optionals default to empty / None
    return True


def _embedded_records(record: RecordDecl, ctx: SchemaContext) -> List[str]:
    """Records held directly (not through list/map/optional) by a record."""
    return [
        f.type.name for f in record.fields
        if isinstance(f.type, SimpleType) and f.type.name in ctx.records
    ]


def find_record_cycle(name: str, ctx: SchemaContext) -> Optional[List[str]]:
    """Return the path of a containment cycle starting at name, if any."""
    def visit(current: str, path: List[str]) -> Optional[List[str]]:
        for child in _embedded_records(ctx.records[current], ctx):
            if child == name:
                return path + [child]
            if child not in path:
                found = visit(child, path + [child])
                if found:
                    return found
        return None

    if name not in ctx.records:
        return None
    return visit(name, [name])


# =============================================================================
# Record Validation
# =============================================================================

def validate_record(record: RecordDecl, ctx: SchemaContext) -> ValidationResult:
    """Check the record capability set: clonable, default-constructible, encodable."""
    result = ValidationResult()

    _check_identifier(record.name, "Record name", result, record.line)
    if record.name in RESERVED_NAMES or record.name in SCALAR_TYPES or record.name == RAW_BYTES:
        result.add_error(f"Record name '{record.name}' is reserved", record.line)
    if record.name in ctx.actor_names:
        result.add_error(f"Record '{record.name}' has the same name as an actor", record.line)

    if not record.fields:
        result.add_warning(f"Record '{record.name}' has no fields", record.line)

    seen = set()
    for f in record.fields:
        where = f"{record.name}.{f.name}"
        _check_identifier(f.name, "Field name", result, f.line)
        if f.name in seen:
            result.add_error(f"Duplicate field '{f.name}' in record '{record.name}'", f.line)
        seen.add(f.name)
        if f.name in RESERVED_FIELD_NAMES or f.name in RESERVED_NAMES or f.name in CLASS_BODY_BUILTINS:
            result.add_error(f"{where}: field name '{f.name}' is reserved", f.line)
        elif f.name in ctx.records:
            result.add_error(f"{where}: field name '{f.name}' shadows record '{f.name}'", f.line)

        for message in type_errors(f.type, ctx, where):
            result.add_error(message, f.line)

        if not is_default_constructible(f.type, ctx):
            result.add_error(
                f"{where}: type '{type_to_str(f.type)}' has no default value; "
                f"records must be default-constructible (use 'optional<{type_to_str(f.type)}>')",
                f.line
            )

    cycle = find_record_cycle(record.name, ctx)
    if cycle:
        result.add_error(
            f"Record '{record.name}' contains itself ({' -> '.join(cycle)}); "
            f"break the cycle with optional<>, list<> or map<>",
            record.line
        )

    return result


# =============================================================================
# Actor Validation
# =============================================================================

def validate_actor(actor: ActorDecl, ctx: SchemaContext) -> ValidationResult:
    """Validate an actor declaration."""
    result = ValidationResult()

    _check_identifier(actor.name, "Actor name", result, actor.line)

    if not actor.state:
        result.add_error(f"Actor '{actor.name}' does not declare a state record", actor.line)
    elif actor.state not in ctx.records:
        result.add_error(
            f"Actor '{actor.name}' uses unknown state record '{actor.state}'",
            actor.line
        )

    if not actor.implementation:
        result.add_error(f"Actor '{actor.name}' does not name its implementation module", actor.line)
    elif not all(part.isidentifier() for part in actor.implementation.split(".")):
        result.add_error(
            f"Actor '{actor.name}': '{actor.implementation}' is not a module path",
            actor.line
        )

    for message in method_table_errors(actor):
        result.add_error(message, actor.line)

    for method in actor.methods:
        result.merge(validate_method(method, actor, ctx))

    constants = {}
    for method in actor.methods:
        constant = method.name.upper()
        other = constants.setdefault(constant, method.name)
        if other != method.name:
            result.add_error(
                f"Actor '{actor.name}': methods '{other}' and '{method.name}' map to the same "
                f"constant METHOD_{constant}",
                method.line
            )

    if len(actor.methods) == 1:
        result.add_warning(f"Actor '{actor.name}' only declares a constructor", actor.line)

    return result


def validate_method(method: MethodDecl, actor: ActorDecl, ctx: SchemaContext) -> ValidationResult:
    """Validate a method signature."""
    result = ValidationResult()
    where = f"{actor.name}.{method.name}"

    _check_identifier(method.name, "Method name", result, method.line)
    if method.name.startswith("_"):
        result.add_error(f"{where}: exported methods must be public (no leading underscore)", method.line)

    for message in type_errors(method.params, ctx, f"{where} params", allow_raw=True):
        result.add_error(message, method.line)

    if method.return_type is not None:
        for message in type_errors(method.return_type, ctx, f"{where} return", allow_raw=True):
            result.add_error(message, method.line)
        if method.constructor:
            result.add_warning(f"{where}: constructor declares a return payload", method.line)

    return result
