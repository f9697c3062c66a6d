"""
Parser for actor manifests using Lark.

Uses a formal grammar definition (actor_grammar.lark) and Lark's Earley parser
to produce AST nodes defined in actor_ast.py.
"""

from pathlib import Path
from lark import Lark, Transformer, v_args

from actor_ast import (
    Schema, Import, Field, RecordDecl, ActorDecl, MethodDecl,
    SimpleType, ListType, MapType, OptionalType, TypeExpr, type_to_str,
)


# Load grammar from file
GRAMMAR_PATH = Path(__file__).parent / "actor_grammar.lark"


@v_args(inline=True)
class ManifestTransformer(Transformer):
    """Transform Lark parse tree into our AST nodes."""

    # =========================================================================
    # Top-level
    # =========================================================================

    def start(self, *items):
        schema = Schema()
        for decl in items:
            if isinstance(decl, Import):
                schema.imports.append(decl)
            elif isinstance(decl, RecordDecl):
                schema.records.append(decl)
            elif isinstance(decl, ActorDecl):
                schema.actors.append(decl)
        return schema

    # =========================================================================
    # Imports
    # =========================================================================

    def imports_decl(self, path):
        return Import(path=path)

    def import_path(self, *parts):
        return "/".join(str(p) for p in parts)

    # =========================================================================
    # Records
    # =========================================================================

    def record_decl(self, name, description, *fields):
        return RecordDecl(
            name=str(name),
            description=self._unquote(description),
            fields=[f for f in fields if isinstance(f, Field)],
            line=getattr(name, "line", 0) or 0,
        )

    def field(self, name, type_expr):
        return Field(name=str(name), type=type_expr, line=getattr(name, "line", 0) or 0)

    # =========================================================================
    # Actors
    # =========================================================================

    def actor_decl(self, name, description, *items):
        actor = ActorDecl(
            name=str(name),
            description=self._unquote(description),
            line=getattr(name, "line", 0) or 0,
        )
        for item in items:
            if isinstance(item, MethodDecl):
                actor.methods.append(item)
            elif item[0] == "state":
                actor.state = item[1]
            elif item[0] == "implementation":
                actor.implementation = item[1]
            elif item[0] == "invoke":
                actor.invoke = item[1]
        return actor

    def state_ref(self, name):
        return ("state", str(name))

    def implementation_ref(self, path):
        return ("implementation", path)

    def module_path(self, *parts):
        return ".".join(str(p) for p in parts)

    def invoke_flag(self, flag):
        return ("invoke", str(flag) == "true")

    def method_decl(self, kind, name, param_type, return_type, binding):
        return MethodDecl(
            name=str(name),
            param_type=param_type,
            return_type=return_type,
            constructor=str(kind) == "constructor",
            binding=int(binding) if binding is not None else None,
            line=getattr(kind, "line", 0) or 0,
        )

    # =========================================================================
    # Types
    # =========================================================================

    def simple_type(self, name):
        return SimpleType(name=str(name))

    def generic_type(self, name, *type_args):
        name_str = str(name)
        if name_str == "list" and len(type_args) == 1:
            return ListType(element_type=type_args[0])
        elif name_str == "map" and len(type_args) == 2:
            return MapType(key_type=type_args[0], value_type=type_args[1])
        elif name_str == "optional" and len(type_args) == 1:
            return OptionalType(inner_type=type_args[0])
        else:
            # Generic type we don't handle; the validator reports it
            return SimpleType(name=f"{name_str}<{', '.join(type_to_str(t) for t in type_args)}>")

    def type_ref(self, type_expr):
        return type_expr

    # =========================================================================
    # Helpers
    # =========================================================================

    def _unquote(self, s):
        """Remove quotes from a string token."""
        if s is None:
            return None
        s = str(s)
        if s.startswith('"') and s.endswith('"'):
            return s[1:-1]
        return s


# Create parser instance
_parser = None


def get_parser():
    """Get or create the Lark parser instance."""
    global _parser
    if _parser is None:
        with open(GRAMMAR_PATH) as f:
            grammar = f.read()
        _parser = Lark(
            grammar,
            parser='earley',
            start=['start', 'type_ref'],
            propagate_positions=True,
            maybe_placeholders=True,
        )
    return _parser


def parse(source: str) -> Schema:
    """Parse manifest source code into an AST Schema."""
    tree = get_parser().parse(source, start='start')
    return ManifestTransformer().transform(tree)


def parse_type(source: str) -> TypeExpr:
    """Parse a single type expression such as 'map<string, u64>'."""
    tree = get_parser().parse(source, start='type_ref')
    return ManifestTransformer().transform(tree)


def parse_file(path) -> Schema:
    """Parse a manifest file into an AST Schema."""
    with open(path) as f:
        return parse(f.read())
