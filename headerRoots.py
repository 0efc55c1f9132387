#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# ****************************************************************************************************************************************************
# * BSD 3-Clause License
# *
# * Copyright (c) 2025, Mana Battery
# * All rights reserved.
# *
# * Redistribution and use in source and binary forms, with or without modification, are permitted provided that the following conditions are met:
# *
# * 1. Redistributions of source code must retain the above copyright notice, this list of conditions and the following disclaimer.
# * 2. Redistributions in binary form must reproduce the above copyright notice, this list of conditions and the following disclaimer in the
# *    documentation and/or other materials provided with the distribution.
# * 3. Neither the name of the copyright holder nor the names of its contributors may be used to endorse or promote products derived from this
# *    software without specific prior written permission.
# *
# * THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
# * THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
# * CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
# * PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
# * LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
# * EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
"""Find the headers a consumer of a built library should include directly.

PURPOSE:
    Libraries install many headers, but only some of them are meant to be
    included directly. Generated configuration headers and internal helpers
    are pulled in by the public entry points and break or misbehave when
    included on their own. This tool finds the entry points and the system
    headers they expose.

WHAT IT DOES:
    - Compiles every header of the library standalone in include-trace mode
      (clang++ -fsyntax-only -H -I. <header>, from the header directory)
    - Merges the traces into one inclusion graph
    - Reports headers no other library header includes (top-level headers),
      collapsing include cycles to their lexicographically smallest member
    - Reports the system headers the top-level headers include directly,
      relative to their include root (e.g., stddef.h)

METHOD:
    Headers that do not compile standalone are left out. Roots are found with
    Kahn's algorithm over the inclusion graph; whatever remains after it is
    split into strongly connected components with NetworkX.

PERFORMANCE:
    One compiler process per header, run in parallel (--jobs). Use --cache-dir
    to reuse traces across runs while the headers are unchanged.

REQUIREMENTS:
    - Python 3.8+
    - clang++ (or g++) in PATH, or --compiler
    - networkx, colorama, packaging

EXAMPLES:
    # Top-level and system headers of an installed library
    ./headerRoots.py ../build/libpng/include

    # Only the system headers, as JSON
    ./headerRoots.py ../build/libpng/include --system-only --json

    # Use a library config file and show the inclusion trees
    ./headerRoots.py --config libpng.json --tree

    # Export the inclusion graph for Gephi
    ./headerRoots.py ../build/libpng/include --export libpng.gexf
"""
import os
import sys
import json
import argparse
import logging
import dataclasses
from typing import Any, Dict, List, Optional

from headerlib.package_verification import require_package

require_package("networkx", "inclusion graph analysis")

from headerlib.color_utils import Colors, print_error, print_warning, should_use_color
from headerlib.constants import (
    EXIT_INVALID_ARGS,
    EXIT_KEYBOARD_INTERRUPT,
    EXIT_RUNTIME_ERROR,
    EXIT_SUCCESS,
    MAX_FAILED_DISPLAY,
    ArgumentError,
    HeaderRootsError,
)
from headerlib.inclusion_graph import RootResolution, export_inclusion_graph, includers_map
from headerlib.library_config import LibraryConfig, load_library_config
from headerlib.resolver import HeaderResolver, get_resolver
from headerlib.trace_parser import render_tree

__version__ = "1.0.0"
__author__ = "Mana Battery"

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def build_config(args: argparse.Namespace) -> LibraryConfig:
    """Create the library configuration from a config file and command line overrides.

    Raises:
        ArgumentError: If neither HEADER_DIR nor --config is given, or a value is invalid
        ConfigError: If the config file is malformed
    """
    if args.jobs is not None and args.jobs < 1:
        raise ArgumentError("--jobs must be at least 1")
    if args.timeout is not None and args.timeout <= 0:
        raise ArgumentError("--timeout must be positive")

    if args.config:
        config = load_library_config(args.config)
    elif args.header_dir:
        header_dir = os.path.abspath(args.header_dir)
        config = LibraryConfig(name=args.name or os.path.basename(os.path.dirname(header_dir)) or header_dir, header_dir=header_dir)
    else:
        raise ArgumentError("Either HEADER_DIR or --config is required")

    overrides: Dict[str, Any] = {}
    if args.config and args.header_dir:
        overrides["header_dir"] = os.path.abspath(args.header_dir)
    if args.config and args.name:
        overrides["name"] = args.name
    if args.compiler:
        overrides["compiler"] = args.compiler
    if args.flag:
        overrides["extra_flags"] = config.extra_flags + tuple(args.flag)
    if args.exclude:
        overrides["exclude_patterns"] = config.exclude_patterns + tuple(args.exclude)
    if args.jobs is not None:
        overrides["max_workers"] = args.jobs
    if args.timeout is not None:
        overrides["timeout"] = args.timeout
    if args.cache_dir:
        overrides["cache_dir"] = args.cache_dir

    return dataclasses.replace(config, **overrides) if overrides else config


def format_json_output(resolver: HeaderResolver, resolution: RootResolution, args: argparse.Namespace) -> str:
    """Format the resolution result as JSON."""
    data: Dict[str, Any] = {"library": resolver.config.name}
    if not args.system_only:
        data["top_level_headers"] = resolution.top_level_headers
        data["cycles"] = resolution.cycles
    if not args.lib_only:
        data["system_headers"] = resolver.system_headers()
    data["failed_headers"] = [{"header": failed.header, "reason": failed.reason} for failed in resolver.failed_headers]
    return json.dumps(data, indent=2)


def print_header_list(title: str, headers: List[str], color: str) -> None:
    print(f"\n{Colors.BRIGHT}{title} ({len(headers)}):{Colors.RESET}")
    if not headers:
        print(f"  {Colors.DIM}(none){Colors.RESET}")
    for header in headers:
        print(f"  {color}{header}{Colors.RESET}")


def print_results(resolver: HeaderResolver, resolution: RootResolution, args: argparse.Namespace) -> None:
    """Print the resolution result as colored text.

    Args:
        resolver: Resolver holding the traced forest
        resolution: Root resolution of the inclusion graph
        args: Parsed command line arguments
    """
    print(f"{Colors.BRIGHT}Header roots of {resolver.config.name}{Colors.RESET} ({resolver.config.header_root})")

    if not args.system_only:
        print_header_list("Top-level headers", resolution.top_level_headers, Colors.GREEN)
        if resolution.cycles:
            print(f"\n{Colors.BRIGHT}Include cycles ({len(resolution.cycles)}):{Colors.RESET}")
            for members in resolution.cycles:
                marker = f" {Colors.DIM}(representative: {members[0]}){Colors.RESET}" if members[0] in resolution.cycle_representatives else ""
                print(f"  {Colors.YELLOW}{' <-> '.join(members)}{Colors.RESET}{marker}")

    if not args.lib_only:
        print_header_list("System headers", resolver.system_headers(), Colors.CYAN)

    if args.tree:
        forest = resolver.forest
        for header in resolution.top_level_headers:
            print(f"\n{Colors.BRIGHT}Inclusion tree of {header}:{Colors.RESET}")
            for line in render_tree(forest[header]):
                print(f"  {line}")

    failed = resolver.failed_headers
    if args.failed and failed:
        print(f"\n{Colors.BRIGHT}Headers that do not compile standalone ({len(failed)}):{Colors.RESET}")
        includers = includers_map(resolver.graph())
        for entry in failed[:MAX_FAILED_DISPLAY]:
            included_by = sorted(includers.get(entry.header, ()))
            suffix = f" {Colors.DIM}included by: {', '.join(included_by)}{Colors.RESET}" if included_by else ""
            print(f"  {Colors.RED}{entry.header}{Colors.RESET} {Colors.DIM}({entry.reason}){Colors.RESET}{suffix}")
        if len(failed) > MAX_FAILED_DISPLAY:
            print(f"  {Colors.DIM}... and {len(failed) - MAX_FAILED_DISPLAY} more{Colors.RESET}")
    elif failed:
        print(f"\n{Colors.DIM}{len(failed)} header(s) do not compile standalone (use --failed to list them){Colors.RESET}")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Find the top-level headers of a library and the system headers they include.",
        epilog="""
Top-level headers are headers no other header of the library includes.
Mutually including headers are reported once, by their smallest name.
Headers that fail to compile standalone are left out of all results.
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("header_dir", metavar="HEADER_DIR", nargs="?", help="Installed header directory of the library (e.g., build/libpng/include)")
    parser.add_argument("--name", help="Library name (default: parent directory name of HEADER_DIR)")
    parser.add_argument("--config", metavar="FILE", help="JSON library config file (name, header_dir, compiler, extra_c_flags, ...)")
    parser.add_argument("--compiler", metavar="CC", help="Compiler used for include traces (default: auto-detect clang++)")
    parser.add_argument("--flag", action="append", metavar="FLAG", help="Extra compiler flag, can be used multiple times (e.g., --flag=-DNDEBUG)")
    parser.add_argument("--jobs", "-j", type=int, metavar="N", help="Number of concurrent compiler processes (default: CPU count)")
    parser.add_argument("--timeout", type=float, metavar="SECONDS", help="Time limit per compiler process; a timeout counts as failed header")
    parser.add_argument(
        "--exclude",
        action="append",
        metavar="PATTERN",
        help="Exclude headers matching glob pattern (can be used multiple times). " 'Examples: "*/detail/*", "*_generated.h"',
    )

    selection = parser.add_mutually_exclusive_group()
    selection.add_argument("--system-only", action="store_true", help="Only report system headers")
    selection.add_argument("--lib-only", action="store_true", help="Only report top-level library headers")

    parser.add_argument("--tree", action="store_true", help="Show the inclusion tree of each top-level header")
    parser.add_argument("--failed", action="store_true", help="List headers that do not compile standalone")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--export", metavar="FILE", help="Export the inclusion graph (.graphml, .gexf, .json)")
    parser.add_argument("--cache-dir", metavar="DIR", help="Cache traces in DIR across runs")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    args = create_parser().parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.json or not should_use_color(no_color=args.no_color):
        Colors.disable()

    try:
        config = build_config(args)
    except HeaderRootsError as e:
        print_error(str(e))
        return EXIT_INVALID_ARGS

    try:
        resolver = get_resolver(config)
        resolution = resolver.resolve_roots()

        if not resolution.top_level_headers and resolver.forest:
            print_warning(f"No top-level header found for {config.name}")

        if args.export:
            export_inclusion_graph(resolver.graph(), args.export)

        if args.json:
            print(format_json_output(resolver, resolution, args))
        else:
            print_results(resolver, resolution, args)

    except HeaderRootsError as e:
        logger.debug("Resolution of %s failed: %s", config.name, e, exc_info=True)
        print_error(str(e))
        return e.exit_code

    return EXIT_SUCCESS


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.warning("\nInterrupted by user")
        sys.exit(EXIT_KEYBOARD_INTERRUPT)
    except HeaderRootsError as e:
        logger.error(str(e))
        sys.exit(e.exit_code)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if logging.getLogger().level == logging.DEBUG:
            import traceback

            traceback.print_exc()
        sys.exit(EXIT_RUNTIME_ERROR)
