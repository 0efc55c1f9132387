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
"""Parse compiler include traces into inclusion trees.

A syntax-only compiler run with -H prints one line per entered header on stderr:

    . /usr/include/stdio.h
    .. /usr/include/x86_64-linux-gnu/bits/libc-header-start.h
    . ./png/pngconf.h

The offset of the first space on a line is the nesting depth of that header.
parse_trace_output() turns such a trace into an InclusionNode tree rooted at the
traced header, normalize_tree() rewrites node names relative to the library
header root so trees of different headers can be compared by name.

All tree walks here are iterative so very deep include chains cannot hit the
interpreter recursion limit.
"""

import re
import logging
import posixpath
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Set, Tuple

from headerlib.constants import DEFAULT_IGNORED_PREFIXES, MULTIPLE_INCLUDE_GUARDS_MARKER, TREE_INDENT, TraceParseError
from headerlib.file_utils import is_header_file, is_ignored_path

logger = logging.getLogger(__name__)

# "./" path components: at the start of the path or right after a separator
_CURRENT_DIR_COMPONENT = re.compile(r"(?:(?<=/)|^)\./")


def clean_node_name(name: str) -> str:
    """Remove "./" components from a header path ("./a/./b.h" -> "a/b.h").

    Parent references ("../") are left untouched.
    """
    return _CURRENT_DIR_COMPONENT.sub("", name)


@dataclass
class InclusionNode:
    """One header reference discovered in a trace.

    Attributes:
        name: Header path; relative to the header root for project headers after
            normalization, absolute for system headers
        children: Headers included directly by this one, in compiler order
    """

    name: str
    children: List["InclusionNode"] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.name = clean_node_name(self.name)

    def add_child(self, child: "InclusionNode") -> None:
        self.children.append(child)

    def iter_nodes(self) -> Iterator["InclusionNode"]:
        """Yield this node and all descendants in pre-order (compiler order)."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def names(self) -> Set[str]:
        """Return the set of all node names in this tree."""
        return {node.name for node in self.iter_nodes()}

    def size(self) -> int:
        """Return the number of nodes in this tree."""
        return sum(1 for _ in self.iter_nodes())


def parse_trace_line(line: str) -> Tuple[int, str]:
    """Split one trace line into (depth, path).

    Args:
        line: Trace line such as ".. /usr/include/stddef.h"

    Returns:
        Tuple of (depth, path) where depth is the offset of the first space

    Raises:
        TraceParseError: If the line contains no space
    """
    sep = line.find(" ")
    if sep < 0:
        raise TraceParseError(f"Expected a space in trace line: {line!r}")
    return sep, line[sep:].strip()


def extract_trace_entries(output: str, ignored_prefixes: Iterable[str] = DEFAULT_IGNORED_PREFIXES) -> List[Tuple[int, str]]:
    """Collect the (depth, path) pairs of a trace that describe header files.

    Entries under ignored roots and lines not naming a .h/.hpp/.hxx file are
    dropped. Parsing stops at the "Multiple include guards may be useful for:"
    trailer, whose file list is not part of the include tree.

    Raises:
        TraceParseError: If a trace line contains no space
    """
    ignored_prefixes = tuple(ignored_prefixes)
    entries: List[Tuple[int, str]] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        if line.startswith(MULTIPLE_INCLUDE_GUARDS_MARKER):
            break
        depth, header = parse_trace_line(line)
        if is_ignored_path(header, ignored_prefixes):
            continue
        if is_header_file(header):
            entries.append((depth, header))
    return entries


def build_tree(root_name: str, entries: Iterable[Tuple[int, str]]) -> InclusionNode:
    """Reconstruct the inclusion tree from depth-tagged entries.

    The stack holds the currently open ancestors; stack[k] is the open node at
    depth k + 1. An entry whose depth matches an open level closes that level
    and every deeper one and becomes a sibling there. Any other depth (a jump
    past the deepest open level) nests under the deepest open node.

    Args:
        root_name: Name of the traced header (the tree root)
        entries: (depth, path) pairs in trace order

    Returns:
        The reconstructed tree
    """
    root = InclusionNode(root_name)
    stack: List[InclusionNode] = []
    for depth, path in entries:
        node = InclusionNode(path)
        if 1 <= depth <= len(stack):
            del stack[depth - 1 :]
        parent = stack[-1] if stack else root
        parent.add_child(node)
        stack.append(node)
    return root


def parse_trace_output(output: str, root_name: str, ignored_prefixes: Iterable[str] = DEFAULT_IGNORED_PREFIXES) -> InclusionNode:
    """Parse the compiler trace of one header into its inclusion tree.

    A trace without any header line yields a root with no children.

    Args:
        output: Compiler stderr of a -H run
        root_name: Name of the traced header
        ignored_prefixes: Roots of headers to drop entirely

    Returns:
        Inclusion tree rooted at root_name (names not yet normalized)

    Raises:
        TraceParseError: If a trace line contains no space
    """
    entries = extract_trace_entries(output, ignored_prefixes)
    tree = build_tree(root_name, entries)
    logger.debug("Parsed trace of %s: %d entries", tree.name, len(entries))
    return tree


def normalize_tree(tree: InclusionNode, header_root: str) -> InclusionNode:
    """Rewrite node names under header_root to paths relative to it.

    Parent references are collapsed first ("<root>/sub/../a.h" -> "a.h"), so
    every tree names the same project header identically. Names not under the
    header root stay unchanged and denote system headers.
    The tree is modified in place and returned.

    Args:
        tree: Freshly parsed tree
        header_root: Absolute library header root

    Returns:
        The same tree with normalized names
    """
    prefix = header_root.rstrip("/") + "/"
    for node in tree.iter_nodes():
        if not posixpath.isabs(node.name):
            node.name = posixpath.normpath(node.name)
            continue
        path = posixpath.normpath(node.name)
        if path.startswith(prefix):
            node.name = path[len(prefix) :]
    return tree


def render_tree(tree: InclusionNode, max_depth: int = -1) -> List[str]:
    """Render a tree as indented lines, one per node.

    Args:
        tree: Tree to render
        max_depth: Deepest level to print (-1 = unlimited)

    Returns:
        List of lines
    """
    lines: List[str] = []
    stack: List[Tuple[InclusionNode, int]] = [(tree, 0)]
    while stack:
        node, depth = stack.pop()
        lines.append(f"{TREE_INDENT * depth}{node.name}")
        if max_depth < 0 or depth < max_depth:
            stack.extend((child, depth + 1) for child in reversed(node.children))
    return lines
