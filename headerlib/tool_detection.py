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
"""Centralized external tool detection for header-roots.

This module finds the C/C++ compiler used to produce include traces
(`-fsyntax-only -H`). Both clang and gcc print the depth-annotated trace,
clang is preferred.

Tool detection results are cached within the Python process session to avoid repeated
subprocess calls. Detection includes version extraction and command validation.

CLI Interface:
    python3 -m headerlib.tool_detection --find-compiler   # Output command name, exit 0/1
    python3 -m headerlib.tool_detection --check-all       # Output JSON with all tools
    python3 -m headerlib.tool_detection --verbose         # Enable debug logging
"""

import sys
import json
import shutil
import logging
import argparse
import subprocess
from typing import Optional, Dict, List
from dataclasses import dataclass

from headerlib.constants import TOOL_VERSION_TIMEOUT

logger = logging.getLogger(__name__)

# Compiler command variants to try (in order of preference)
TRACE_COMPILER_COMMANDS = ["clang++-20", "clang++-19", "clang++-18", "clang++", "g++"]

# Session-level cache for tool detection results (keyed by function name)
_tool_cache: Dict[str, "ToolInfo"] = {}


@dataclass
class ToolInfo:
    """Information about a detected external tool.

    Attributes:
        command: Command name as found in PATH (e.g., "clang++-19")
        full_command: Full invocation string
        version: First line of the tool's --version output
        error_message: Why the tool was not found (None when found)
    """

    command: Optional[str]
    full_command: Optional[str]
    version: Optional[str]
    error_message: Optional[str] = None

    def is_found(self) -> bool:
        """Check if tool was found.

        Returns:
            True if command is not None
        """
        return self.command is not None


def clear_cache() -> None:
    """Clear the tool detection cache.

    Useful for testing or when environment changes during process lifetime.
    """
    _tool_cache.clear()
    logger.debug("Tool detection cache cleared")


def _try_command(cmd_parts: List[str], timeout: int = TOOL_VERSION_TIMEOUT) -> Optional[str]:
    """Try to run a command with --version and return version output.

    Args:
        cmd_parts: Command parts (e.g., ["clang++"])
        timeout: Timeout in seconds for subprocess call

    Returns:
        Version output string if successful, None otherwise
    """
    try:
        result = subprocess.run(cmd_parts + ["--version"], capture_output=True, text=True, check=True, timeout=timeout)
        return result.stdout.strip()
    except (subprocess.CalledProcessError, FileNotFoundError, PermissionError, subprocess.TimeoutExpired):
        return None


def _extract_version(output: str) -> str:
    """Extract version string from command output.

    Args:
        output: Raw version output from command

    Returns:
        First line of the output, stripped
    """
    lines = output.split("\n")
    return lines[0].strip() if lines else output.strip()


def find_trace_compiler() -> ToolInfo:
    """Find a compiler able to emit a header include trace.

    Tries commands in order: clang++-20, clang++-19, clang++-18, clang++, g++

    Returns:
        ToolInfo with command and version if found, or empty ToolInfo if not found
    """
    cache_key = "find_trace_compiler"
    if cache_key in _tool_cache:
        return _tool_cache[cache_key]

    for cmd in TRACE_COMPILER_COMMANDS:
        logger.debug("Trying %s...", cmd)
        version_output = _try_command([cmd])

        if version_output:
            # Validate command exists in PATH
            if shutil.which(cmd):
                version = _extract_version(version_output)
                logger.debug("Found %s version %s", cmd, version)
                tool_info = ToolInfo(command=cmd, full_command=cmd, version=version)
                _tool_cache[cache_key] = tool_info
                return tool_info
            logger.debug("%s responded but not in PATH", cmd)
        else:
            logger.debug("%s not found", cmd)

    logger.debug("No trace compiler found")
    tool_info = ToolInfo(command=None, full_command=None, version=None, error_message=f"not in PATH (tried: {', '.join(TRACE_COMPILER_COMMANDS)})")
    _tool_cache[cache_key] = tool_info
    return tool_info


def check_all_tools() -> Dict[str, Dict[str, str]]:
    """Check all known tools and return their status.

    Returns:
        Dictionary with tool names as keys, each containing command and version.
        Missing tools are omitted from the result.
    """
    tools: Dict[str, Dict[str, str]] = {}

    tool_info = find_trace_compiler()
    if tool_info.is_found():
        assert tool_info.command is not None  # For type checker
        tools["compiler"] = {"command": tool_info.command, "version": tool_info.version or "unknown"}

    return tools


def main() -> int:
    """Main entry point for CLI usage.

    Returns:
        Exit code: 0 if tool found (or check-all succeeds), 1 if not found
    """
    parser = argparse.ArgumentParser(description="Detect external tools for header-roots", formatter_class=argparse.RawDescriptionHelpFormatter)

    parser.add_argument("--find-compiler", action="store_true", help="Find a compiler that supports include traces")
    parser.add_argument("--check-all", action="store_true", help="Check all tools and output JSON")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose debug logging")

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(message)s", stream=sys.stderr)
    else:
        logging.basicConfig(level=logging.WARNING)

    if args.check_all:
        print(json.dumps({"tools": check_all_tools()}, indent=2))
        return 0

    if args.find_compiler:
        tool_info = find_trace_compiler()
        if tool_info.is_found():
            print(tool_info.full_command)
            return 0
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
