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
"""Shared constants for header-roots.

This module provides centralized constants used across the header-roots modules
and the headerRoots.py CLI, together with the exception hierarchy.
"""

# =============================================================================
# Exit Codes
# =============================================================================

EXIT_SUCCESS = 0
EXIT_INVALID_ARGS = 1
EXIT_RUNTIME_ERROR = 2
EXIT_KEYBOARD_INTERRUPT = 130

# =============================================================================
# Header Classification
# =============================================================================

HEADER_EXTENSIONS = (".h", ".hpp", ".hxx")

# Headers under these roots are dropped from traces entirely (toolchain-bundled headers)
DEFAULT_IGNORED_PREFIXES = ("/usr/lib/",)

# System header paths are reported relative to the last occurrence of this segment
INCLUDE_SEGMENT = "/include/"

# Conventional header root of a built library: <build_root>/<library>/include
LIBRARY_INCLUDE_DIR = "include"

# =============================================================================
# Compiler Trace Constants
# =============================================================================

# Flags for a syntax-only run that prints every entered header with its nesting depth
TRACE_FLAGS = ("-fsyntax-only", "-H", "-I.")

# clang/gcc print this after the include trace, followed by a plain file list
MULTIPLE_INCLUDE_GUARDS_MARKER = "Multiple include guards may be useful for:"

# Timeouts (seconds)
TRACE_TIMEOUT = 60  # Per-header compiler invocation
TOOL_VERSION_TIMEOUT = 5  # --version probes during tool detection

# Parallel processing
DEFAULT_MAX_WORKERS = None  # None = use all CPU cores

# =============================================================================
# Display Limits
# =============================================================================

MAX_FAILED_DISPLAY = 20  # Maximum failed headers listed by the CLI
TREE_INDENT = "  "

# =============================================================================
# Cache Constants
# =============================================================================

FOREST_CACHE_PREFIX = "header_forest_"  # Cached traced forest: header_forest_<key>.pickle
CACHE_SUFFIX = ".pickle"
MAX_CACHE_AGE_HOURS = 168  # Maximum cache age in hours (7 days)

# =============================================================================
# Graph Export Constants
# =============================================================================

SUPPORTED_GRAPH_FORMATS = [".graphml", ".gexf", ".json"]

# =============================================================================
# Exception Classes
# =============================================================================


class HeaderRootsError(Exception):
    """Base exception for all header-roots errors.

    All header-roots exceptions carry an exit_code attribute that indicates
    what exit code the program should use when this error is caught at the
    main entry point.
    """

    def __init__(self, message: str, exit_code: int = EXIT_RUNTIME_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


# Validation errors (EXIT_INVALID_ARGS)
class ValidationError(HeaderRootsError):
    """Raised when input validation fails (arguments, paths, configuration)."""

    def __init__(self, message: str):
        super().__init__(message, EXIT_INVALID_ARGS)


class HeaderDirectoryError(ValidationError):
    """Raised when the library header directory is missing or not a directory."""


class ConfigError(ValidationError):
    """Raised when a library configuration is missing or malformed."""


class ArgumentError(ValidationError):
    """Raised when command-line arguments are invalid."""


# External tool errors
class ExternalToolError(HeaderRootsError):
    """Raised when the external compiler cannot be used."""


class CompilerError(ExternalToolError):
    """Raised when the compiler process cannot be spawned at all."""


class CompilerNotFoundError(ExternalToolError):
    """Raised when no usable compiler is configured or found in PATH."""


# Analysis/processing errors (EXIT_RUNTIME_ERROR)
class AnalysisError(HeaderRootsError):
    """Raised when analysis or processing operations fail."""


class TraceParseError(AnalysisError):
    """Raised when a compiler include trace contains a malformed line."""


class GraphBuildError(AnalysisError):
    """Raised when the inclusion graph cannot be built or exported."""
