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
"""Extract the system headers exposed by the top-level library headers."""

import logging
from typing import Dict, Iterable, List, Optional

from headerlib.constants import INCLUDE_SEGMENT
from headerlib.file_utils import is_project_header, is_system_header, unique_in_order
from headerlib.trace_parser import InclusionNode

logger = logging.getLogger(__name__)


def get_included_sys_headers(tree: InclusionNode) -> List[str]:
    """Collect the system headers included directly by project headers of a tree.

    A system header included only from another system header is not reported:
    it is an implementation detail of the toolchain, not part of what the
    library pulls in.

    Args:
        tree: Normalized inclusion tree

    Returns:
        Absolute system header paths in pre-order, possibly with duplicates
    """
    sys_headers: List[str] = []
    for node in tree.iter_nodes():
        if not is_project_header(node.name):
            continue
        sys_headers.extend(child.name for child in node.children if is_system_header(child.name))
    return sys_headers


def strip_include_prefix(path: str) -> Optional[str]:
    """Cut a system header path after its last "/include/" segment.

    "/usr/lib/gcc/x86_64-linux-gnu/13/include/stddef.h" -> "stddef.h"

    Returns:
        The relative include name, or None when the path has no include segment
    """
    idx = path.rfind(INCLUDE_SEGMENT)
    if idx < 0:
        return None
    return path[idx + len(INCLUDE_SEGMENT) :]


def extract_system_headers(roots: Iterable[str], trees: Dict[str, InclusionNode]) -> List[str]:
    """Build the deduplicated system header list of the given top-level headers.

    Args:
        roots: Top-level header names, in the order they should be scanned
        trees: Traced trees keyed by root name

    Returns:
        Relative system header names in first-seen order
    """
    relative: List[str] = []
    for root in roots:
        tree = trees.get(root)
        if tree is None:
            continue
        for header in get_included_sys_headers(tree):
            name = strip_include_prefix(header)
            if name is None:
                logger.debug("Skipping system header without include segment: %s", header)
                continue
            relative.append(name)

    return unique_in_order(relative)
