"""Command line entry point.

Usage:
    zig-build [zig-build.toml] [--compile-commands[=NAME]] [--cwd DIR]
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys
from pathlib import Path

from zigbuild.build import build
from zigbuild.config import DEFAULT_BUILD_FILE, load_build_file
from zigbuild.errors import ZigBuildError
from zigbuild.log import setup_logging
from zigbuild.toolchain import ToolchainCache, default_cache_root


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zig-build",
        description="Build and cross-compile Node-API addons with zig",
    )
    parser.add_argument("config", nargs="?", default=DEFAULT_BUILD_FILE, help="Build file")
    parser.add_argument("--cwd", type=Path, help="Working directory for compiler invocations")
    parser.add_argument(
        "--compile-commands",
        nargs="?",
        const=True,
        default=None,
        metavar="NAME",
        help="Write a compilation database (default name compile_commands.json)",
    )
    parser.add_argument("--cache-dir", type=Path, help="Toolchain cache directory")
    parser.add_argument(
        "--no-system-zig",
        action="store_true",
        help="Ignore a zig found on PATH and always use the cached download",
    )
    parser.add_argument("--log-level", default="INFO", help="Log level")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = make_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        build_file = load_build_file(args.config)
        options = build_file.options
        if args.cwd is not None:
            options = dataclasses.replace(options, cwd=args.cwd.resolve())
        if args.compile_commands is not None:
            options = dataclasses.replace(options, compile_commands=args.compile_commands)
        cache = ToolchainCache(
            root=args.cache_dir or default_cache_root(),
            use_system_zig=not args.no_system_zig,
        )
        asyncio.run(build(build_file.targets, options, cache=cache))
    except ZigBuildError as exc:
        print(f"error [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
