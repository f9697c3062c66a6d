#!/usr/bin/env python3
"""
Lint actor manifests for errors and warnings.

Usage:
    python actor_lint.py <file.actor> [file2.yaml ...]
    python actor_lint.py --all       # Lint every manifest under hostsim/actors
"""

import argparse
import sys
from pathlib import Path

import yaml
from lark.exceptions import UnexpectedInput

# Add scripts directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from actor_loader import load_manifest_ast, MANIFEST_SUFFIXES
from actor_validate import validate_schema
from method_table import build_method_table, lock_drift, lock_path_for, read_lock, MethodTableError

# Example actor manifests
ACTORS_DIR = Path(__file__).parent.parent / "hostsim" / "actors"


def lint_file(path: Path) -> tuple[int, int]:
    """Lint a single manifest. Returns (error_count, warning_count)."""
    path = Path(path)
    if not path.exists():
        print(f"{path}: file not found")
        return 1, 0

    try:
        schema = load_manifest_ast(path)
    except UnexpectedInput as e:
        print(f"{path}: parse error: {e}")
        return 1, 0
    except (ValueError, yaml.YAMLError) as e:
        print(f"{path}: parse error: {e}")
        return 1, 0
    except FileNotFoundError as e:
        print(f"{path}: error: {e}")
        return 1, 0

    result = validate_schema(schema)

    # Numbering drift only makes sense for actors whose table builds
    if not result.has_errors:
        lock_path = lock_path_for(path)
        for actor in schema.actors:
            try:
                table = build_method_table(actor)
            except MethodTableError:
                continue
            locked = read_lock(lock_path, actor.name)
            for problem in lock_drift(table, locked or {}):
                result.add_error(f"{actor.name}: {problem} (see {lock_path.name})", actor.line)

    for error in result.errors:
        loc = f":{error.line}" if error.line else ""
        print(f"{path}{loc}: error: {error.message}")

    for warning in result.warnings:
        loc = f":{warning.line}" if warning.line else ""
        print(f"{path}{loc}: warning: {warning.message}")

    return len(result.errors), len(result.warnings)


def find_all_manifests() -> list[Path]:
    """Find every manifest under the example actors directory."""
    files = []
    for suffix in MANIFEST_SUFFIXES:
        files.extend(ACTORS_DIR.rglob(f"*{suffix}"))
    return sorted(files)


def main():
    parser = argparse.ArgumentParser(
        description="Lint actor manifests for errors and warnings."
    )
    parser.add_argument(
        "files",
        nargs="*",
        help="Files to lint"
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Lint all example actor manifests"
    )

    args = parser.parse_args()

    if args.all:
        files = find_all_manifests()
        if not files:
            print("No manifest files found")
            sys.exit(1)
    elif args.files:
        files = [Path(f) for f in args.files]
    else:
        parser.print_help()
        sys.exit(1)

    total_errors = 0
    total_warnings = 0

    for path in files:
        errors, warnings = lint_file(path)
        total_errors += errors
        total_warnings += warnings

    if total_errors or total_warnings:
        print(f"\n{total_errors} error(s), {total_warnings} warning(s)")

    sys.exit(1 if total_errors else 0)


if __name__ == "__main__":
    main()
