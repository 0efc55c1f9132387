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
"""Pytest configuration and shared fixtures for header-roots tests.

Fixtures build a temporary installed header directory and replace the
compiler with canned -H traces, so no test needs clang installed.

Trace helpers:
- trace_line(depth, path): one line of -H output
- format_trace([(depth, path), ...]): full stderr of a -H run
"""

import os
import sys
import shutil
import tempfile
import subprocess
from pathlib import Path
from typing import Callable, Dict, Generator, Iterable, List, Optional, Tuple, Union
import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from headerlib.color_utils import Colors
from headerlib.resolver import reset_resolvers
from headerlib.tool_detection import clear_cache

FAKE_COMPILER = "fake-clang++"

# A canned trace is either stderr text of a successful run, or (returncode, stderr)
CannedTrace = Union[str, Tuple[int, str]]


def trace_line(depth: int, path: str) -> str:
    """Format one -H trace line: depth dots, a space, the path."""
    return "." * depth + " " + path


def format_trace(entries: Iterable[Tuple[int, str]]) -> str:
    """Format a whole -H trace from (depth, path) pairs."""
    return "".join(trace_line(depth, path) + "\n" for depth, path in entries)


class FakeCompiler:
    """Replacement for subprocess.run that answers trace invocations from a table.

    Attributes:
        traces: Canned trace per header name relative to the working directory
        calls: Header names traced, in call order
    """

    def __init__(self, traces: Optional[Dict[str, CannedTrace]] = None):
        self.traces: Dict[str, CannedTrace] = dict(traces or {})
        self.calls: List[str] = []
        self.commands: List[List[str]] = []

    def __call__(self, cmd: List[str], cwd: Optional[str] = None, **kwargs) -> subprocess.CompletedProcess:
        header = os.path.relpath(cmd[-1], cwd) if cwd else cmd[-1]
        self.calls.append(header)
        self.commands.append(list(cmd))

        canned = self.traces.get(header, "")
        if isinstance(canned, tuple):
            returncode, stderr = canned
        else:
            returncode, stderr = 0, canned
        return subprocess.CompletedProcess(cmd, returncode, stdout=None, stderr=stderr)


@pytest.fixture(autouse=True)
def reset_global_state() -> Generator[None, None, None]:
    """Start every test with an empty resolver registry and tool cache."""
    reset_resolvers()
    clear_cache()
    yield
    reset_resolvers()
    clear_cache()


@pytest.fixture
def restore_colors() -> Generator[None, None, None]:
    """Restore Colors attributes a test disabled."""
    saved = {attr: getattr(Colors, attr) for attr in dir(Colors) if not attr.startswith("_") and attr != "disable"}
    yield
    for attr, value in saved.items():
        setattr(Colors, attr, value)


@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for tests.

    Scope: function (default)
    Use for: File I/O operations that need isolation
    """
    tmpdir = tempfile.mkdtemp(prefix="header_roots_test_")
    yield os.path.realpath(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def make_header_dir(temp_dir: str) -> Callable[..., str]:
    """Factory creating <temp_dir>/<library>/include with empty header files.

    Usage:
        header_dir = make_header_dir(["a.h", "sub/b.hpp"])
    """

    def _make(headers: Iterable[str], library: str = "mylib") -> str:
        header_dir = Path(temp_dir) / library / "include"
        header_dir.mkdir(parents=True, exist_ok=True)
        for header in headers:
            path = header_dir / header
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(f"/* {header} */\n")
        return str(header_dir)

    return _make


@pytest.fixture
def fake_compiler(monkeypatch: pytest.MonkeyPatch) -> FakeCompiler:
    """Patch subprocess.run of the trace invoker with a FakeCompiler.

    Fill fake_compiler.traces with header name -> canned trace.
    """
    compiler = FakeCompiler()
    monkeypatch.setattr("headerlib.trace_invoker.subprocess.run", compiler)
    return compiler


@pytest.fixture
def simple_library(make_header_dir: Callable[..., str], fake_compiler: FakeCompiler) -> str:
    """a.h includes stddef.h, b.h includes a.h.

    Returns:
        Header directory of the library
    """
    header_dir = make_header_dir(["a.h", "b.h"])
    fake_compiler.traces.update(
        {
            "a.h": format_trace([(1, "/usr/include/stddef.h")]),
            "b.h": format_trace([(1, "./a.h"), (2, "/usr/include/stddef.h")]),
        }
    )
    return header_dir


@pytest.fixture
def cyclic_library(make_header_dir: Callable[..., str], fake_compiler: FakeCompiler) -> str:
    """x.h and y.h include each other and nothing else.

    Returns:
        Header directory of the library
    """
    header_dir = make_header_dir(["x.h", "y.h"])
    fake_compiler.traces.update(
        {
            "x.h": format_trace([(1, "./y.h")]),
            "y.h": format_trace([(1, "./x.h")]),
        }
    )
    return header_dir


@pytest.fixture
def png_like_library(make_header_dir: Callable[..., str], fake_compiler: FakeCompiler) -> str:
    """Library modelled after an installed libpng.

    png.h pulls in pnglibconf.h, pngconf.h and system headers;
    pngconf.h does not compile on its own.

    Returns:
        Header directory of the library
    """
    header_dir = make_header_dir(["png.h", "pngconf.h", "pnglibconf.h"], library="libpng")
    fake_compiler.traces.update(
        {
            "png.h": format_trace(
                [
                    (1, "./pnglibconf.h"),
                    (1, "./pngconf.h"),
                    (2, "/usr/lib/gcc/x86_64-linux-gnu/13/include/limits.h"),
                    (2, "/usr/include/stdio.h"),
                    (3, "/usr/include/x86_64-linux-gnu/bits/types.h"),
                    (2, "/usr/include/setjmp.h"),
                    (1, "/usr/include/time.h"),
                ]
            )
            + "Multiple include guards may be useful for:\n/usr/include/x86_64-linux-gnu/bits/types.h\n",
            "pngconf.h": (1, "./pngconf.h:42:2: error: #error png.h must be included first\n"),
            "pnglibconf.h": "",
        }
    )
    return header_dir


@pytest.fixture
def make_trace() -> Callable[[Iterable[Tuple[int, str]]], str]:
    """Return the trace formatting helper."""
    return format_trace
