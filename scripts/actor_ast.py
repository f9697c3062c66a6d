"""
AST node definitions for actor manifests.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union


# =============================================================================
# Type AST nodes
# =============================================================================

@dataclass
class SimpleType:
    """Simple type: u64, string, cid, RawBytes, or a record name."""
    name: str
    line: int = 0
    column: int = 0


@dataclass
class ListType:
    """List type: list<element_type>."""
    element_type: 'TypeExpr'
    line: int = 0
    column: int = 0


@dataclass
class MapType:
    """Map type: map<key_type, value_type>."""
    key_type: 'TypeExpr'
    value_type: 'TypeExpr'
    line: int = 0
    column: int = 0


@dataclass
class OptionalType:
    """Optional type: optional<inner_type>."""
    inner_type: 'TypeExpr'
    line: int = 0
    column: int = 0


# Union type for all types
TypeExpr = Union[SimpleType, ListType, MapType, OptionalType]


RAW_BYTES = "RawBytes"


def type_to_str(type_expr) -> str:
    """Render a type the way it is written in a manifest."""
    if type_expr is None:
        return ""
    if isinstance(type_expr, str):
        return type_expr
    if isinstance(type_expr, SimpleType):
        return type_expr.name
    if isinstance(type_expr, ListType):
        return f"list<{type_to_str(type_expr.element_type)}>"
    if isinstance(type_expr, MapType):
        return f"map<{type_to_str(type_expr.key_type)}, {type_to_str(type_expr.value_type)}>"
    if isinstance(type_expr, OptionalType):
        return f"optional<{type_to_str(type_expr.inner_type)}>"
    return str(type_expr)


# =============================================================================
# Declarations
# =============================================================================

@dataclass
class Import:
    path: str
    line: int = 0
    column: int = 0


@dataclass
class Field:
    name: str
    type: TypeExpr
    line: int = 0
    column: int = 0


@dataclass
class RecordDecl:
    """A data record: state records and method parameter/return records."""
    name: str
    description: Optional[str] = None
    fields: List[Field] = field(default_factory=list)
    line: int = 0
    column: int = 0


@dataclass
class MethodDecl:
    """A public method of an actor's implementation block."""
    name: str
    param_type: Optional[TypeExpr] = None  # None means RawBytes
    return_type: Optional[TypeExpr] = None  # None means no payload
    constructor: bool = False
    binding: Optional[int] = None  # explicit method number, must match position
    line: int = 0
    column: int = 0

    @property
    def returns_payload(self) -> bool:
        return self.return_type is not None

    @property
    def params(self) -> TypeExpr:
        return self.param_type if self.param_type is not None else SimpleType(name=RAW_BYTES)


@dataclass
class ActorDecl:
    name: str
    description: Optional[str] = None
    state: Optional[str] = None
    implementation: Optional[str] = None  # module path holding the class named `name`
    invoke: bool = True  # emit the host entrypoint
    methods: List[MethodDecl] = field(default_factory=list)
    line: int = 0
    column: int = 0


@dataclass
class Schema:
    """A parsed manifest (possibly merged with its imports)."""
    imports: List[Import] = field(default_factory=list)
    records: List[RecordDecl] = field(default_factory=list)
    actors: List[ActorDecl] = field(default_factory=list)

    def get_record(self, name: str) -> Optional[RecordDecl]:
        return next((r for r in self.records if r.name == name), None)
