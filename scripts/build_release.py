"""CLI to build production releases for all supported platforms."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from unity_autobuild.app import resolve_project_root, run_build  # noqa: E402

from build_engine import BuildTarget  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build production releases")
    parser.add_argument(
        "--platforms",
        nargs="*",
        help="Subset of platforms to build (ios, android)",
    )
    parser.add_argument(
        "--project-root",
        type=Path,
        default=None,
        help="Game project root (defaults to the enclosing project of the working directory)",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    root = args.project_root.resolve() if args.project_root else resolve_project_root()
    targets = [BuildTarget.parse(name) for name in (args.platforms or [target.key for target in BuildTarget])]
    for target in targets:
        code = run_build(target, root)
        if code != 0:
            return code
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
