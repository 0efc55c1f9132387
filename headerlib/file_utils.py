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
"""File and path utilities for discovering and classifying header files."""

import os
import fnmatch
import logging
from collections import defaultdict
from typing import Set, List, Dict, DefaultDict, Tuple, Any, Iterable

from headerlib.constants import HEADER_EXTENSIONS

logger = logging.getLogger(__name__)


def is_header_file(path: str) -> bool:
    """Check if a path has a recognized C/C++ header extension (.h, .hpp, .hxx)."""
    return path.endswith(HEADER_EXTENSIONS)


def is_project_header(name: str) -> bool:
    """Check if a normalized node name denotes a project header.

    Names relative to the library header root are project headers; names that
    are still absolute after normalization live outside it and are system headers.
    """
    return not name.startswith("/")


def is_system_header(name: str) -> bool:
    """Check if a normalized node name denotes a system header."""
    return name.startswith("/")


def is_ignored_path(path: str, ignored_prefixes: Iterable[str]) -> bool:
    """Check if a path lives under one of the ignored system library roots.

    Args:
        path: Header path as reported by the compiler
        ignored_prefixes: Roots such as "/usr/lib/" (toolchain-bundled headers)

    Returns:
        True if the path contains any ignored root
    """
    return any(prefix in path for prefix in ignored_prefixes)


def find_header_files(header_root: str) -> List[str]:
    """Recursively list header files under a header root.

    Args:
        header_root: Directory to scan

    Returns:
        Sorted list of absolute header file paths
    """
    headers: List[str] = []
    for root, dirs, files in os.walk(header_root):
        dirs.sort()
        for file in files:
            if is_header_file(file):
                headers.append(os.path.abspath(os.path.join(root, file)))

    headers.sort()
    logger.debug("Found %d header files under %s", len(headers), header_root)
    return headers


def exclude_headers_by_patterns(headers: List[str], exclude_patterns: Iterable[str], header_root: str) -> Tuple[List[str], int, List[str], Dict[str, Any]]:
    """Exclude headers matching any of the provided glob patterns.

    Patterns are matched against the path relative to the header root.

    Args:
        headers: List of header paths
        exclude_patterns: Glob patterns to exclude (e.g., ["*/internal/*", "*_private.h"])
        header_root: Root directory of the library headers

    Returns:
        Tuple of (filtered_headers, excluded_count, patterns_with_no_matches, statistics_dict)
        - filtered_headers: Headers after exclusions, in input order
        - excluded_count: Number of headers excluded
        - patterns_with_no_matches: List of patterns that matched no headers
        - statistics_dict: {"total_excluded": int, "by_pattern": {pattern: {"count": int, "examples": List[str]}}}
    """
    exclude_patterns = list(exclude_patterns)
    if not exclude_patterns:
        return list(headers), 0, [], {}

    filtered: List[str] = []
    pattern_match_counts: Dict[str, int] = {pattern: 0 for pattern in exclude_patterns}
    pattern_examples: DefaultDict[str, List[str]] = defaultdict(list)

    for header in headers:
        rel_path = os.path.relpath(header, header_root) if header.startswith(header_root) else header

        excluded = False
        for pattern in exclude_patterns:
            if fnmatch.fnmatch(rel_path, pattern):
                excluded = True
                pattern_match_counts[pattern] += 1
                # Store up to 3 examples per pattern
                if len(pattern_examples[pattern]) < 3:
                    pattern_examples[pattern].append(rel_path)
                break

        if not excluded:
            filtered.append(header)

    excluded_count = len(headers) - len(filtered)
    patterns_with_no_matches = [pattern for pattern, count in pattern_match_counts.items() if count == 0]

    logger.info("Excluded %s headers using %s patterns", excluded_count, len(exclude_patterns))
    for pattern, count in pattern_match_counts.items():
        logger.debug("Pattern '%s' matched %s headers", pattern, count)

    by_pattern = {}
    for pattern in exclude_patterns:
        if pattern_match_counts[pattern] > 0:
            by_pattern[pattern] = {"count": pattern_match_counts[pattern], "examples": pattern_examples[pattern]}

    stats = {"total_excluded": excluded_count, "by_pattern": by_pattern}

    return filtered, excluded_count, patterns_with_no_matches, stats


def newest_mtime(paths: Iterable[str]) -> float:
    """Return the newest modification time among paths (0.0 for none).

    Paths that vanished in the meantime are skipped.
    """
    newest = 0.0
    for path in paths:
        try:
            newest = max(newest, os.path.getmtime(path))
        except OSError:
            continue
    return newest


def unique_in_order(items: Iterable[str]) -> List[str]:
    """Deduplicate items keeping the first occurrence of each."""
    seen: Set[str] = set()
    result: List[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result
