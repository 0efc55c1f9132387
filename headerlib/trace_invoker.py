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
"""Run the compiler in include-trace mode, one process per header.

Each header of the library is compiled on its own with
`<compiler> -fsyntax-only -H -I. <header>` from the header root. A header
that does not compile standalone (for example because it relies on macros an
umbrella header defines first) is not an error: it yields TraceFailed and is
left out of the forest. Only a compiler that cannot be started at all is
fatal.
"""

import os
import logging
import subprocess
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Union

from headerlib.constants import TRACE_FLAGS, CompilerError, CompilerNotFoundError, TraceParseError
from headerlib.library_config import LibraryConfig
from headerlib.tool_detection import find_trace_compiler
from headerlib.trace_parser import InclusionNode, normalize_tree, parse_trace_output

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Traced:
    """Successful trace of one header.

    Attributes:
        header: Header path relative to the header root
        tree: Normalized inclusion tree rooted at header
    """

    header: str
    tree: InclusionNode

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class TraceFailed:
    """Header that could not be traced standalone.

    Attributes:
        header: Header path relative to the header root
        reason: Short description (exit code, timeout or parse error)
        stderr: Compiler diagnostics, if any
    """

    header: str
    reason: str
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return False


TraceResult = Union[Traced, TraceFailed]


def resolve_compiler(config: LibraryConfig) -> str:
    """Return the compiler command to use for a library.

    Raises:
        CompilerNotFoundError: If none is configured and none is found in PATH
    """
    if config.compiler:
        return config.compiler

    tool_info = find_trace_compiler()
    if not tool_info.is_found():
        raise CompilerNotFoundError(f"No C/C++ compiler found for include tracing ({tool_info.error_message}). Install clang (e.g., 'sudo apt install clang-19')")
    assert tool_info.command is not None
    return tool_info.command


def build_trace_command(compiler: str, header_path: str, extra_flags: Sequence[str] = ()) -> List[str]:
    """Build the argument list of a trace invocation."""
    return [compiler, *TRACE_FLAGS, *extra_flags, header_path]


def header_name(header_path: str, header_root: str) -> str:
    """Return the name of a header relative to the header root."""
    return os.path.relpath(header_path, header_root).replace(os.sep, "/")


def trace_header(
    header_path: str,
    header_root: str,
    compiler: str,
    extra_flags: Sequence[str] = (),
    ignored_prefixes: Iterable[str] = (),
    timeout: Optional[float] = None,
) -> TraceResult:
    """Trace the includes of one header.

    Args:
        header_path: Absolute path of the header
        header_root: Absolute library header root (working directory, -I.)
        compiler: Compiler command
        extra_flags: Extra compiler flags
        ignored_prefixes: Roots of headers dropped from the trace
        timeout: Seconds before the invocation counts as failed (None = no limit)

    Returns:
        Traced with the normalized tree, or TraceFailed

    Raises:
        CompilerError: If the compiler process cannot be started
    """
    name = header_name(header_path, header_root)
    cmd = build_trace_command(compiler, header_path, extra_flags)

    try:
        result = subprocess.run(
            cmd,
            cwd=header_root,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.debug("Trace of %s timed out after %ss", name, timeout)
        return TraceFailed(header=name, reason=f"timed out after {timeout}s")
    except OSError as e:
        raise CompilerError(f"Failed to run {compiler}: {e}") from e

    if result.returncode != 0:
        logger.debug("Trace of %s failed with code %s:\n%s", name, result.returncode, result.stderr)
        return TraceFailed(header=name, reason=f"exit code {result.returncode}", stderr=result.stderr)

    try:
        tree = parse_trace_output(result.stderr, name, ignored_prefixes)
    except TraceParseError as e:
        logger.debug("Trace of %s is malformed: %s", name, e)
        return TraceFailed(header=name, reason=str(e), stderr=result.stderr)

    return Traced(header=name, tree=normalize_tree(tree, header_root))


def trace_headers(headers: Sequence[str], header_root: str, config: LibraryConfig, compiler: str) -> List[TraceResult]:
    """Trace many headers, concurrently when config.max_workers allows it.

    Invocations are independent; results come back in the order of headers
    regardless of completion order. The first CompilerError cancels every
    trace that has not started yet.

    Args:
        headers: Absolute header paths
        header_root: Absolute library header root
        config: Library configuration (flags, ignored roots, timeout, workers)
        compiler: Compiler command

    Returns:
        One TraceResult per header, in input order

    Raises:
        CompilerError: If the compiler process cannot be started
    """

    def _trace(header_path: str) -> TraceResult:
        return trace_header(header_path, header_root, compiler, config.extra_flags, config.ignored_prefixes, config.timeout)

    max_workers = config.max_workers or os.cpu_count() or 1
    if max_workers == 1 or len(headers) <= 1:
        return [_trace(header) for header in headers]

    logger.info("Tracing %d headers with %s using %d workers...", len(headers), compiler, max_workers)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(_trace, header) for header in headers]
        try:
            for future in as_completed(futures):
                future.result()
        except CompilerError:
            cancelled = sum(1 for future in futures if future.cancel())
            logger.debug("Cancelled %d pending traces", cancelled)
            raise
        return [future.result() for future in futures]
