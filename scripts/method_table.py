"""
Method numbering for actor dispatch.

Method numbers are derived from declaration order: the first declared method
is the constructor and gets number 1, each following method gets the next
integer. Reordering methods is therefore a breaking change to the wire
contract, so every generated actor keeps a lock file recording the numbers
it was built with; a build that would renumber an existing method fails.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import yaml

from actor_ast import ActorDecl, MethodDecl


CONSTRUCTOR_METHOD_ID = 1


class MethodTableError(ValueError):
    """Method numbering cannot be derived, or differs from the lock file."""


@dataclass(frozen=True)
class MethodEntry:
    id: int
    method: MethodDecl

    @property
    def name(self) -> str:
        return self.method.name

    @property
    def is_constructor(self) -> bool:
        return self.id == CONSTRUCTOR_METHOD_ID


@dataclass
class MethodTable:
    """Dense, order-preserving mapping of method numbers to declarations."""
    actor: str
    entries: List[MethodEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[MethodEntry]:
        return iter(self.entries)

    def get(self, method_id: int) -> Optional[MethodEntry]:
        if 1 <= method_id <= len(self.entries):
            return self.entries[method_id - 1]
        return None

    @property
    def constructor(self) -> MethodEntry:
        return self.entries[0]

    def as_dict(self) -> Dict[int, str]:
        return {entry.id: entry.name for entry in self.entries}


def method_table_errors(actor: ActorDecl) -> List[str]:
    """Collect every numbering problem in an actor's method list."""
    errors = []
    methods = actor.methods

    if not methods:
        errors.append(f"Actor '{actor.name}' declares no methods; the first method must be its constructor")
        return errors

    if not methods[0].constructor:
        errors.append(
            f"Actor '{actor.name}': first method '{methods[0].name}' must be declared as the constructor"
        )

    seen = set()
    for position, method in enumerate(methods, start=1):
        if method.constructor and position != CONSTRUCTOR_METHOD_ID:
            errors.append(
                f"Actor '{actor.name}': constructor '{method.name}' is declared at position {position}; "
                f"only the first method can be the constructor"
            )
        if method.name in seen:
            errors.append(f"Actor '{actor.name}': duplicate method '{method.name}'")
        seen.add(method.name)
        if method.binding is not None and method.binding != position:
            errors.append(
                f"Actor '{actor.name}': method '{method.name}' is bound to {method.binding} "
                f"but declared at position {position}; method numbers follow declaration order"
            )

    return errors


def build_method_table(actor: ActorDecl) -> MethodTable:
    """Number an actor's methods 1..N in declaration order."""
    errors = method_table_errors(actor)
    if errors:
        raise MethodTableError("\n".join(errors))

    return MethodTable(
        actor=actor.name,
        entries=[MethodEntry(id=i, method=m) for i, m in enumerate(actor.methods, start=1)],
    )


# =============================================================================
# Lock files
# =============================================================================

def lock_path_for(manifest_path: Path) -> Path:
    """hello_world.actor -> hello_world.lock"""
    manifest_path = Path(manifest_path)
    return manifest_path.with_name(f"{manifest_path.stem}.lock")


def read_lock(path: Path, actor_name: str) -> Optional[Dict[int, str]]:
    """Read the locked numbers for one actor, or None if nothing is locked yet."""
    path = Path(path)
    if not path.exists():
        return None
    data = yaml.safe_load(path.read_text()) or {}
    actors = data.get("actors", {}) or {}
    locked = actors.get(actor_name)
    if locked is None:
        return None
    return {int(k): str(v) for k, v in locked.items()}


def lock_drift(table: MethodTable, locked: Dict[int, str]) -> List[str]:
    """Describe every locked method number the table no longer honours.

    Appending methods after the locked ones is compatible and not reported.
    """
    problems = []
    for method_id, name in sorted(locked.items()):
        entry = table.get(method_id)
        if entry is None:
            problems.append(f"method {method_id} ('{name}') was removed")
        elif entry.name != name:
            problems.append(f"method {method_id} changed from '{name}' to '{entry.name}'")
    return problems


def check_lock(table: MethodTable, locked: Optional[Dict[int, str]]):
    """Raise MethodTableError if the table renumbers locked methods."""
    if not locked:
        return
    problems = lock_drift(table, locked)
    if problems:
        details = "\n".join(f"  - {p}" for p in problems)
        raise MethodTableError(
            f"Method numbering for '{table.actor}' differs from its lock file:\n{details}\n"
            f"Reordering, renaming or removing methods breaks callers. "
            f"Re-run with --update-lock if the change is intentional."
        )


def write_lock(path: Path, tables: List[MethodTable]):
    """Write the numbering of every table, keeping other actors' entries."""
    path = Path(path)
    data = {}
    if path.exists():
        data = yaml.safe_load(path.read_text()) or {}
    actors = data.get("actors", {}) or {}
    for table in tables:
        actors[table.actor] = table.as_dict()

    header = "# Method numbers in use. Generated; edit only via --update-lock.\n"
    path.write_text(header + yaml.safe_dump({"actors": actors}, sort_keys=True))
