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
"""Top-level header resolution for a library, with a process-wide result cache.

The expensive part of resolution is tracing every header of the library with
the compiler. HeaderResolver does that exactly once per library identity, even
when many threads ask for results at the same time, and derives the
top-level and system header lists from the cached forest.

Example:
    >>> config = LibraryConfig.for_library("libpng", "/work/build")
    >>> get_include_lib_headers(config)
    ['png.h']
    >>> get_include_sys_headers(config)
    ['stddef.h', 'stdio.h', ...]
"""

import logging
import threading
from typing import Dict, List, Optional, Tuple

import networkx as nx

from headerlib.cache_utils import cleanup_old_caches, ensure_cache_dir, forest_cache_filename, get_cache_path, load_cache, save_cache
from headerlib.constants import MAX_CACHE_AGE_HOURS, ConfigError
from headerlib.file_utils import exclude_headers_by_patterns, find_header_files
from headerlib.inclusion_graph import RootResolution, build_inclusion_graph, resolve_roots
from headerlib.library_config import LibraryConfig, validate_header_dir
from headerlib.system_headers import extract_system_headers
from headerlib.trace_invoker import TraceFailed, TraceResult, Traced, resolve_compiler, trace_headers
from headerlib.trace_parser import InclusionNode

logger = logging.getLogger(__name__)


class HeaderResolver:
    """Resolves the top-level and system headers of one library.

    The traced forest is computed on first use and never recomputed. Root
    resolution runs again on every call; the system header list is computed
    once.

    Attributes:
        config: Library configuration
    """

    def __init__(self, config: LibraryConfig):
        self.config = config
        self._forest_lock = threading.Lock()
        self._forest: Optional[Dict[str, InclusionNode]] = None
        self._failed: List[TraceFailed] = []
        self._system_lock = threading.Lock()
        self._system_headers: Optional[List[str]] = None

    @property
    def forest(self) -> Dict[str, InclusionNode]:
        """Traced trees keyed by header name, in sorted header order.

        Raises:
            HeaderDirectoryError: If the header directory does not exist
            CompilerNotFoundError: If no compiler is configured or found
            CompilerError: If the compiler cannot be started
        """
        if self._forest is None:
            with self._forest_lock:
                if self._forest is None:
                    forest, failed = self._build_forest()
                    self._failed = failed
                    self._forest = forest
        return self._forest

    @property
    def failed_headers(self) -> List[TraceFailed]:
        """Headers that could not be traced standalone."""
        _ = self.forest
        return list(self._failed)

    def _trace_library(self) -> List[TraceResult]:
        header_root = validate_header_dir(self.config)

        headers = find_header_files(header_root)
        if self.config.exclude_patterns:
            headers, excluded_count, no_match, _ = exclude_headers_by_patterns(headers, self.config.exclude_patterns, header_root)
            if excluded_count:
                logger.info("Excluded %d headers of %s by pattern", excluded_count, self.config.name)
            for pattern in no_match:
                logger.warning("Exclude pattern '%s' matched no headers of %s", pattern, self.config.name)

        if not headers:
            logger.warning("No header files found in %s", header_root)
            return []

        compiler = resolve_compiler(self.config)

        cache_path = None
        if self.config.cache_dir:
            ensure_cache_dir(self.config.cache_dir)
            cleanup_old_caches(self.config.cache_dir, MAX_CACHE_AGE_HOURS)
            cache_path = get_cache_path(self.config.cache_dir, forest_cache_filename(self.config.identity() + (compiler,)))
            cached = load_cache(cache_path, headers, compiler, MAX_CACHE_AGE_HOURS)
            if cached is not None:
                logger.info("Using cached header forest for %s", self.config.name)
                return cached

        results = trace_headers(headers, header_root, self.config, compiler)

        if cache_path is not None:
            save_cache(cache_path, results, headers, compiler)
        return results

    def _build_forest(self) -> Tuple[Dict[str, InclusionNode], List[TraceFailed]]:
        forest: Dict[str, InclusionNode] = {}
        failed: List[TraceFailed] = []
        for result in sorted(self._trace_library(), key=lambda r: r.header):
            if isinstance(result, Traced):
                forest[result.header] = result.tree
            else:
                logger.debug("Excluding %s: %s", result.header, result.reason)
                failed.append(result)

        logger.info("Traced %d headers of %s (%d could not be parsed standalone)", len(forest), self.config.name, len(failed))
        return forest, failed

    def graph(self) -> "nx.DiGraph[str]":
        """Build a fresh inclusion graph from the cached forest."""
        return build_inclusion_graph(self.forest.values())

    def resolve_roots(self) -> RootResolution:
        """Resolve roots and cycle representatives of the inclusion graph."""
        return resolve_roots(self.graph())

    def top_level_headers(self) -> List[str]:
        """Project headers a consumer should include directly."""
        return self.resolve_roots().top_level_headers

    def system_headers(self) -> List[str]:
        """System headers pulled in by the top-level headers, relative to their include root."""
        if self._system_headers is None:
            with self._system_lock:
                if self._system_headers is None:
                    self._system_headers = extract_system_headers(self.top_level_headers(), self.forest)
        return list(self._system_headers)


_resolvers: Dict[Tuple, HeaderResolver] = {}
_registry_lock = threading.Lock()
_default_library: Optional[LibraryConfig] = None


def get_resolver(config: LibraryConfig) -> HeaderResolver:
    """Return the process-wide resolver of a library, creating it on first use."""
    key = config.identity()
    with _registry_lock:
        resolver = _resolvers.get(key)
        if resolver is None:
            resolver = HeaderResolver(config)
            _resolvers[key] = resolver
        return resolver


def reset_resolvers() -> None:
    """Drop all cached resolvers and the default library."""
    global _default_library
    with _registry_lock:
        _resolvers.clear()
        _default_library = None


def set_default_library(config: Optional[LibraryConfig]) -> None:
    """Set the library used by get_include_sys_headers_str() without an argument."""
    global _default_library
    _default_library = config


def get_include_lib_headers(library: LibraryConfig) -> List[str]:
    """Return the headers a consumer of the library should include directly.

    Args:
        library: Library configuration

    Returns:
        Project-relative header paths: in-degree zero headers sorted by name,
        then one representative per otherwise unreachable include cycle

    Raises:
        HeaderDirectoryError: If the header directory does not exist
        CompilerError: If the compiler cannot be started
    """
    return get_resolver(library).top_level_headers()


def get_include_sys_headers(library: LibraryConfig) -> List[str]:
    """Return the system headers the top-level headers of the library pull in.

    Args:
        library: Library configuration

    Returns:
        Deduplicated relative system header paths (e.g., "stddef.h") in first-seen order

    Raises:
        HeaderDirectoryError: If the header directory does not exist
        CompilerError: If the compiler cannot be started
    """
    return get_resolver(library).system_headers()


def get_include_sys_headers_str(library: Optional[LibraryConfig] = None) -> str:
    """Return the system headers of a library, one per line.

    Raises:
        ConfigError: If no library is given and no default library was set
    """
    if library is None:
        library = _default_library
    if library is None:
        raise ConfigError("No library given and no default library set")
    return "\n".join(get_include_sys_headers(library))
