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
"""Inclusion graph construction and top-level header resolution using NetworkX.

The graph merges the per-header trees of a forest. An edge root -> header means
the traced header `root` pulls in `header`, directly or transitively. A header
with no incoming edge is included by no other project header: it is a
top-level header a consumer may include directly.

Headers that include each other form cycles in which no member ever reaches
in-degree zero. Each such cycle that nothing else includes is collapsed to its
lexicographically smallest member so every header stays reachable from an
advertised root.
"""

import os
import json
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterable, List, Set

import networkx as nx
from networkx.readwrite import json_graph

from headerlib.constants import SUPPORTED_GRAPH_FORMATS, GraphBuildError
from headerlib.file_utils import is_system_header
from headerlib.trace_parser import InclusionNode

logger = logging.getLogger(__name__)


@dataclass
class RootResolution:
    """Result of resolving the top-level headers of an inclusion graph.

    Attributes:
        roots: Headers with in-degree zero, sorted by name
        cycle_representatives: Smallest member of each cycle not reachable from an earlier representative
        cycles: Members (sorted) of every cycle left after Kahn's pass, by smallest member
        topological_order: Visitation order of Kahn's pass
    """

    roots: List[str] = field(default_factory=list)
    cycle_representatives: List[str] = field(default_factory=list)
    cycles: List[List[str]] = field(default_factory=list)
    topological_order: List[str] = field(default_factory=list)

    @property
    def top_level_headers(self) -> List[str]:
        """Headers a consumer should include directly."""
        return self.roots + self.cycle_representatives


def build_inclusion_graph(trees: Iterable[InclusionNode]) -> "nx.DiGraph[str]":
    """Merge per-header inclusion trees into one directed graph.

    Every name found in any tree becomes a node, so a header that failed to
    trace can still show up as the target of an edge. For each tree an edge
    runs from the tree root to every header below it. A header listing itself
    adds no edge.

    Node attributes:
        system: True for headers outside the library header root
        traced: True for headers that are the root of a tree

    Args:
        trees: Normalized trees, one per successfully traced header

    Returns:
        NetworkX DiGraph with edges includer -> included

    Raises:
        GraphBuildError: If two trees have the same root name
    """
    trees = list(trees)
    graph: nx.DiGraph[str] = nx.DiGraph()

    traced: Set[str] = set()
    for tree in trees:
        if tree.name in traced:
            raise GraphBuildError(f"Header traced twice: {tree.name}")
        traced.add(tree.name)
        graph.add_nodes_from(tree.names())

    for tree in trees:
        edges = [(tree.name, child.name) for node in tree.iter_nodes() for child in node.children if child.name != tree.name]
        graph.add_edges_from(edges)

    for node in graph.nodes:
        graph.nodes[node]["system"] = is_system_header(node)
        graph.nodes[node]["traced"] = node in traced

    logger.debug("Built inclusion graph with %s nodes and %s edges", graph.number_of_nodes(), graph.number_of_edges())
    return graph


def includers_map(graph: "nx.DiGraph[str]") -> Dict[str, Set[str]]:
    """Return the mapping header -> set of headers that include it.

    Every node is present, headers nobody includes map to an empty set.
    """
    return {node: set(graph.predecessors(node)) for node in graph.nodes}


def resolve_roots(graph: "nx.DiGraph[str]") -> RootResolution:
    """Compute the top-level headers of an inclusion graph.

    Kahn's algorithm runs from the in-degree zero headers, which are the roots.
    Whatever it leaves unvisited sits in or below a cycle. Among those nodes the
    strongly connected components are examined in order of their smallest
    member. Each cycle contributes that member as representative, even when a
    root includes it, unless an earlier representative already reaches it.
    Everything reachable from a representative counts as visited.

    Never fails: an empty graph yields an empty resolution.

    Args:
        graph: Inclusion graph from build_inclusion_graph()

    Returns:
        RootResolution with deterministic ordering
    """
    resolution = RootResolution()
    in_degree: Dict[str, int] = {node: degree for node, degree in graph.in_degree()}

    queue: Deque[str] = deque(sorted(node for node, degree in in_degree.items() if degree == 0))
    resolution.roots = list(queue)
    visited: Set[str] = set()

    while queue:
        header = queue.popleft()
        if header in visited:
            continue
        visited.add(header)
        resolution.topological_order.append(header)

        for included in sorted(graph.successors(header)):
            in_degree[included] -= 1
            if in_degree[included] == 0 and included not in visited:
                queue.append(included)

    unvisited = [node for node in graph.nodes if node not in visited]
    if not unvisited:
        return resolution

    components = [sorted(component) for component in nx.strongly_connected_components(graph.subgraph(unvisited)) if len(component) > 1]
    components.sort(key=lambda members: members[0])

    for members in components:
        resolution.cycles.append(members)
        representative = members[0]
        if representative in visited:
            # Reachable from an earlier representative
            continue

        resolution.cycle_representatives.append(representative)
        visited.add(representative)
        visited.update(nx.descendants(graph, representative))

    logger.debug(
        "Resolved %d roots and %d cycle representatives from %d cycles", len(resolution.roots), len(resolution.cycle_representatives), len(resolution.cycles)
    )
    return resolution


def export_inclusion_graph(graph: "nx.DiGraph[str]", output_path: str) -> None:
    """Write the inclusion graph to a file, format chosen by extension.

    Supported: .graphml, .gexf, .json (node-link data)

    Raises:
        GraphBuildError: On an unsupported extension or a write failure
    """
    ext = os.path.splitext(output_path)[1].lower()
    if ext not in SUPPORTED_GRAPH_FORMATS:
        raise GraphBuildError(f"Unsupported graph format '{ext}' (supported: {', '.join(SUPPORTED_GRAPH_FORMATS)})")

    try:
        if ext == ".graphml":
            nx.write_graphml(graph, output_path)
        elif ext == ".gexf":
            nx.write_gexf(graph, output_path)
        else:
            data: Dict[str, Any] = json_graph.node_link_data(graph)
            with open(output_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
    except OSError as e:
        raise GraphBuildError(f"Failed to write graph to {output_path}: {e}") from e

    logger.info("Exported inclusion graph (%d nodes) to %s", graph.number_of_nodes(), output_path)
