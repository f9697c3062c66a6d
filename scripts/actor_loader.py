"""
Manifest loading utilities.

Provides:
- load_manifest_ast(): Load an actor manifest with imports, return merged Schema AST
- schema_from_dict(): Build a Schema from a YAML manifest
"""

from pathlib import Path
from typing import Any, Dict, List

import yaml

from actor_ast import Schema, Import, Field, RecordDecl, ActorDecl, MethodDecl
from actor_parser import parse, parse_type


MANIFEST_SUFFIXES = (".actor", ".yaml", ".yml")


# =============================================================================
# AST Loading (returns Schema directly)
# =============================================================================

def load_manifest_ast(manifest_path, base_dir=None) -> Schema:
    """
    Load an actor manifest with import resolution.

    Args:
        manifest_path: Path to the .actor or .yaml file
        base_dir: Base directory for resolving imports (defaults to the
            enclosing 'actors' directory, or the manifest's directory)

    Returns:
        Merged Schema AST with all imports resolved
    """
    manifest_path = Path(manifest_path)
    if base_dir is None:
        base_dir = manifest_path.parent
        while base_dir.name != 'actors' and base_dir.parent != base_dir:
            base_dir = base_dir.parent
        if base_dir.name != 'actors':
            base_dir = manifest_path.parent
    else:
        base_dir = Path(base_dir)

    loaded = set()
    return _load_ast_with_imports(manifest_path, base_dir, loaded)


def parse_manifest(path: Path) -> Schema:
    """Parse a single manifest file without resolving imports."""
    path = Path(path)
    source = path.read_text()
    if path.suffix in (".yaml", ".yml"):
        return schema_from_dict(yaml.safe_load(source) or {})
    return parse(source)


def _find_import(imp: Import, base_dir: Path) -> Path:
    for suffix in MANIFEST_SUFFIXES:
        candidate = base_dir / f"{imp.path}{suffix}"
        if candidate.exists():
            return candidate
    candidate = base_dir / imp.path
    if candidate.exists():
        return candidate
    raise FileNotFoundError(f"Import not found: {imp.path} (looked in {base_dir})")


def _load_ast_with_imports(manifest_path: Path, base_dir: Path, loaded: set) -> Schema:
    """Load manifest file and recursively resolve imports at AST level."""
    manifest_path = Path(manifest_path).resolve()
    if str(manifest_path) in loaded:
        return Schema()  # Already loaded (circular import protection)
    loaded.add(str(manifest_path))

    ast = parse_manifest(manifest_path)

    # Start with empty merged schema
    merged = Schema()

    # First, resolve all imports
    for imp in ast.imports:
        imported = _load_ast_with_imports(_find_import(imp, base_dir), base_dir, loaded)
        _merge_schemas(merged, imported)

    # Our own declarations override imported ones of the same name
    _merge_schemas(merged, ast, override=True)

    return merged


def _merge_schemas(target: Schema, source: Schema, override: bool = False):
    """Merge source Schema into target Schema."""
    def merge_by_name(target_list, source_list):
        index = {item.name: i for i, item in enumerate(target_list)}
        for item in source_list:
            if item.name not in index:
                index[item.name] = len(target_list)
                target_list.append(item)
            elif override:
                target_list[index[item.name]] = item

    merge_by_name(target.records, source.records)
    merge_by_name(target.actors, source.actors)

    # Imports - just extend
    target.imports.extend(source.imports)


# =============================================================================
# YAML manifests
# =============================================================================

def schema_from_dict(data: Dict[str, Any]) -> Schema:
    """
    Build a Schema from a YAML manifest.

    Layout:
        imports: [shared/records]
        records:
          State:
            description: ...
            fields: {count: u64}
        actor:
          name: TokenActor
          state: State
          implementation: hostsim.actors.token
          invoke: true
          methods:
            - {name: constructor, constructor: true, params: MintParams}
            - {name: mint, params: MintParams, returns: u64}
    """
    if not isinstance(data, dict):
        raise ValueError("Manifest must be a mapping")

    schema = Schema()

    for path in data.get("imports", []) or []:
        schema.imports.append(Import(path=str(path)))

    records = data.get("records", {}) or {}
    if not isinstance(records, dict):
        raise ValueError("'records' must map record names to definitions")
    for name, body in records.items():
        schema.records.append(_record_from_dict(str(name), body or {}))

    actors = data.get("actors", [])
    if "actor" in data:
        actors = [data["actor"]] + list(actors)
    for body in actors:
        schema.actors.append(_actor_from_dict(body))

    return schema


def _record_from_dict(name: str, body: Dict[str, Any]) -> RecordDecl:
    fields = body.get("fields", {}) or {}
    if not isinstance(fields, dict):
        raise ValueError(f"records.{name}.fields must map field names to types")
    return RecordDecl(
        name=name,
        description=body.get("description"),
        fields=[Field(name=str(k), type=parse_type(str(v))) for k, v in fields.items()],
    )


def _flag(value: Any, where: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{where} must be true or false, got {value!r}")
    return value


def _actor_from_dict(body: Dict[str, Any]) -> ActorDecl:
    if not isinstance(body, dict) or "name" not in body:
        raise ValueError("Actor definitions need a 'name'")
    name = str(body["name"])
    methods: List[MethodDecl] = []
    for entry in body.get("methods", []) or []:
        if isinstance(entry, str):
            entry = {"name": entry}
        if "name" not in entry:
            raise ValueError(f"actor.{name}.methods: every method needs a 'name'")
        methods.append(MethodDecl(
            name=str(entry["name"]),
            param_type=parse_type(str(entry["params"])) if entry.get("params") else None,
            return_type=parse_type(str(entry["returns"])) if entry.get("returns") else None,
            constructor=_flag(entry.get("constructor", False), f"actor.{name}.methods.{entry['name']}.constructor"),
            binding=int(entry["binding"]) if entry.get("binding") is not None else None,
        ))
    return ActorDecl(
        name=name,
        description=body.get("description"),
        state=body.get("state"),
        implementation=body.get("implementation"),
        invoke=_flag(body.get("invoke", True), f"actor.{name}.invoke"),
        methods=methods,
    )
