#!/usr/bin/env python3
"""
Build a wheel for the current java2uml_core package and store it
in a designated output directory (`dist/wheels` by default).

This script:
1. Validates that pyproject.toml exists
2. Installs the minimal build backend
3. Builds the wheel
4. Moves the wheel into the target directory
"""

import subprocess
from pathlib import Path
import sys


def main():
    repo_root = Path(__file__).resolve().parent
    pyproject = repo_root / "pyproject.toml"

    if not pyproject.exists():
        print("ERROR: pyproject.toml not found. Cannot build wheel.", file=sys.stderr)
        sys.exit(1)

    wheels_dir = repo_root / "dist" / "wheels"
    wheels_dir.mkdir(parents=True, exist_ok=True)

    print("\n=== Building java2uml wheel ===")
    print(f"Project root: {repo_root}")
    print(f"Output dir:   {wheels_dir}\n")

    subprocess.run([sys.executable, "-m", "pip", "install", "--upgrade", "build"], check=True)
    subprocess.run([sys.executable, "-m", "build", "--wheel", "--outdir", str(wheels_dir)],
                   cwd=repo_root, check=True)

    built = sorted(wheels_dir.glob("java2uml_core-*.whl"))
    if not built:
        print("ERROR: build finished but no wheel was produced.", file=sys.stderr)
        sys.exit(1)

    print("\n=== DONE ===")
    for wheel in built:
        print(f"  {wheel.name}")


if __name__ == "__main__":
    main()
