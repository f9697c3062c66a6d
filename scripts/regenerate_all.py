#!/usr/bin/env python3
"""
Regenerate all example actor artifacts from their manifests.

This script regenerates:
1. Python dispatch and persistence code (<name>_generated.py)
2. Markdown documentation (<name>.md), with --markdown

Manifests that declare no actor (shared record files) are skipped.

Usage:
    ./scripts/regenerate_all.py [--markdown] [--verbose] [--actor hello_world]
"""

import argparse
import subprocess
import sys
from pathlib import Path


# Directories
REPO_ROOT = Path(__file__).parent.parent
ACTORS_DIR = REPO_ROOT / "hostsim" / "actors"
GENERATOR = REPO_ROOT / "scripts" / "generate_actor.py"

MANIFEST_SUFFIXES = (".actor", ".yaml", ".yml")


def find_actor_manifests() -> list[Path]:
    """Find manifests directly in the actors directory (shared/ holds imports only)."""
    manifests = []
    for item in sorted(ACTORS_DIR.iterdir()):
        if item.is_file() and item.suffix in MANIFEST_SUFFIXES:
            manifests.append(item)
    return manifests


def run_generator(manifest: Path, flag: str, verbose: bool = False) -> bool:
    """Run generate_actor.py with one output flag."""
    result = subprocess.run(
        [
            sys.executable,
            str(GENERATOR),
            flag,
            "--output-dir", str(manifest.parent),
            str(manifest),
        ],
        capture_output=True,
        text=True,
    )

    if result.returncode == 0:
        if verbose:
            for line in result.stdout.splitlines():
                print(f"  {line}")
        return True
    else:
        print(f"  Error generating {flag[2:]}: {result.stderr}", file=sys.stderr)
        return False


def main():
    parser = argparse.ArgumentParser(
        description="Regenerate all example actor artifacts from their manifests"
    )
    parser.add_argument(
        "--markdown",
        action="store_true",
        help="Also regenerate markdown documentation",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed output",
    )
    parser.add_argument(
        "--actor", "-a",
        help="Only process a specific manifest (e.g., 'hello_world')",
    )

    args = parser.parse_args()

    manifests = find_actor_manifests()

    if not manifests:
        print("No actor manifests found.", file=sys.stderr)
        sys.exit(1)

    if args.actor:
        manifests = [m for m in manifests if m.stem == args.actor]
        if not manifests:
            print(f"Actor manifest not found: {args.actor}", file=sys.stderr)
            sys.exit(1)

    print(f"Found {len(manifests)} manifest(s)")
    print()

    success_count = 0
    error_count = 0

    for manifest in manifests:
        print(f"Processing: {manifest.name}")

        ok = run_generator(manifest, "--python", args.verbose)
        if args.markdown:
            ok = run_generator(manifest, "--markdown", args.verbose) and ok

        if ok:
            success_count += 1
        else:
            error_count += 1

        print()

    print(f"Done: {success_count} succeeded, {error_count} failed")

    if error_count > 0:
        sys.exit(1)


if __name__ == "__main__":
    main()
