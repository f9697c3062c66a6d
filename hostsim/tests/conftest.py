"""
Pytest configuration for host simulation tests.

Regenerates example actor code from manifests before running tests.
"""

import subprocess
import sys
from pathlib import Path

import pytest

from hostsim import Machine


def pytest_configure(config):
    """Regenerate actor code before test run."""
    project_root = Path(__file__).parent.parent.parent
    scripts_dir = project_root / "scripts"
    actors_dir = project_root / "hostsim" / "actors"

    manifests = sorted(
        item for item in actors_dir.iterdir()
        if item.is_file() and item.suffix in (".actor", ".yaml", ".yml")
    )

    for manifest in manifests:
        cmd = [
            sys.executable,
            str(scripts_dir / "generate_actor.py"),
            str(manifest),
            "--python",
            "--output-dir", str(actors_dir),
        ]
        result = subprocess.run(cmd, capture_output=True, text=True)
        if result.returncode != 0:
            print(f"Warning: Failed to regenerate {manifest.name}")
            print(result.stderr)
        else:
            print(f"Regenerated: {manifest.name}")


@pytest.fixture
def machine():
    """A machine with an empty blockstore."""
    return Machine()
