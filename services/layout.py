# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Grid and hierarchical tree layouts for the topology graph."""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from itertools import count
from math import ceil, sqrt
from typing import Iterable

import networkx as nx

from services.positions import PositionStore, ViewMode
from services.topology import TopologyGraph

logger = logging.getLogger(__name__)

MARGIN = 80
GRID_SPACING_X = 180
GRID_SPACING_Y = 140
LEVEL_GAP = 150
SIBLING_GAP = 160
TREE_GAP = 80

Point = tuple[float, float]


def grid_columns(node_count: int) -> int:
    return max(1, ceil(sqrt(node_count)))


def grid_positions(
    node_ids: list[int],
    top: float = MARGIN,
    taken: Iterable[Point] = (),
    columns: int | None = None,
) -> dict[int, Point]:
    """Row-major placement on a square-ish grid, skipping cells listed in ``taken``."""
    columns = columns or grid_columns(len(node_ids))
    used = set(taken)
    cells = (
        (MARGIN + (index % columns) * GRID_SPACING_X, top + (index // columns) * GRID_SPACING_Y)
        for index in count()
    )
    positions: dict[int, Point] = {}
    for node_id in node_ids:
        cell = next(cells)
        while cell in used:
            cell = next(cells)
        positions[node_id] = cell
    return positions


def build_digraph(node_ids: Iterable[int], edges: Iterable[tuple[int, int]]) -> nx.MultiDiGraph:
    """Directed multigraph over ``node_ids``; parallel connections each count toward degree."""
    graph = nx.MultiDiGraph()
    graph.add_nodes_from(sorted(node_ids))
    graph.add_edges_from((s, t) for s, t in edges if s in graph and t in graph)
    return graph


def _roots(graph: nx.MultiDiGraph) -> list[int]:
    ordered = sorted(graph.nodes)
    connected = [n for n in ordered if graph.degree(n) > 0]
    roots = [n for n in connected if graph.in_degree(n) == 0]
    if roots:
        return roots
    if connected:
        busiest = max(graph.degree(n) for n in connected)
        return [n for n in connected if graph.degree(n) == busiest]
    return ordered[:1]


def select_roots(node_ids: list[int], edges: list[tuple[int, int]]) -> list[int]:
    """Pick tree roots among ``node_ids`` (ordered ascending, so ties break by id).

    Connected nodes without incoming edges come first; failing that, the connected
    nodes of maximum total degree; failing that (no edges at all), the first node.
    """
    return _roots(build_digraph(node_ids, edges))


@dataclass
class TreeLevels:
    roots: list[int] = field(default_factory=list)
    levels: dict[int, int] = field(default_factory=dict)
    trees: list[list[int]] = field(default_factory=list)
    disconnected: list[int] = field(default_factory=list)


def _unreached_components(graph: nx.MultiDiGraph, levels: dict[int, int]) -> list[list[int]]:
    rest = graph.subgraph(n for n in graph if n not in levels and graph.degree(n) > 0)
    return sorted((sorted(c) for c in nx.weakly_connected_components(rest)), key=lambda c: c[0])


def compute_levels(node_ids: list[int], edges: list[tuple[int, int]]) -> TreeLevels:
    """Breadth-first levels from the selected roots; first visit wins."""
    graph = build_digraph(node_ids, edges)
    result = TreeLevels()

    def traverse(root: int) -> None:
        result.roots.append(root)
        result.levels[root] = 0
        visited = [root]
        queue = deque([root])
        while queue:
            current = queue.popleft()
            for child in graph.successors(current):
                if child in result.levels:
                    continue
                result.levels[child] = result.levels[current] + 1
                visited.append(child)
                queue.append(child)
        result.trees.append(visited)

    for root in _roots(graph):
        if root not in result.levels and graph.degree(root) > 0:
            traverse(root)

    # components that only hang off a cycle are never reached from the first roots;
    # repeated until every connected node has a level
    components = _unreached_components(graph, result.levels)
    while components:
        for component in components:
            for root in _roots(graph.subgraph(component)):
                if root not in result.levels:
                    traverse(root)
        components = _unreached_components(graph, result.levels)

    result.disconnected = [n for n in sorted(graph.nodes) if n not in result.levels]
    return result


def tree_positions(node_ids: list[int], edges: list[tuple[int, int]]) -> dict[int, Point]:
    info = compute_levels(node_ids, edges)
    positions: dict[int, Point] = {}
    offset_x = float(MARGIN)
    deepest = -1
    for tree in info.trees:
        by_level: dict[int, list[int]] = defaultdict(list)
        for node_id in tree:
            by_level[info.levels[node_id]].append(node_id)
        width = max(len(members) for members in by_level.values())
        for level, members in by_level.items():
            start = offset_x + (width - len(members)) * SIBLING_GAP / 2
            for index, node_id in enumerate(members):
                positions[node_id] = (start + index * SIBLING_GAP, MARGIN + level * LEVEL_GAP)
            deepest = max(deepest, level)
        offset_x += width * SIBLING_GAP + TREE_GAP
    if info.disconnected:
        top = MARGIN + (deepest + 1) * LEVEL_GAP
        positions.update(grid_positions(info.disconnected, top=top))
    return positions


@dataclass
class LayoutResult:
    mode: ViewMode
    positions: dict[int, Point]
    recomputed: bool


def apply_layout(graph: TopologyGraph, mode: ViewMode, store: PositionStore) -> LayoutResult:
    """Position every node of ``graph``; cached coordinates always win over fresh ones."""
    node_ids = [node.id for node in graph.nodes]
    shape = graph.shape_key()
    if store.has_all(mode, node_ids) and store.shape(mode) == shape:
        positions = {node_id: store.get(mode, node_id) for node_id in node_ids}
        recomputed = False
    else:
        known = store.positions(mode)
        cached = {n: known[n] for n in node_ids if n in known}
        missing = [n for n in node_ids if n not in cached]
        if mode == "tree":
            fresh = tree_positions(node_ids, [(e.source, e.target) for e in graph.edges])
        else:
            # new nodes take free cells so they never land on a cached node
            fresh = grid_positions(
                missing, taken=cached.values(), columns=grid_columns(len(node_ids))
            )
        for node_id in missing:
            store.set(mode, node_id, *fresh[node_id])
        positions = {node_id: store.get(mode, node_id) for node_id in node_ids}
        store.set_shape(mode, shape)
        recomputed = True
        logger.debug("%s layout computed for %d node(s)", mode, len(node_ids))
    for node in graph.nodes:
        node.x, node.y = positions[node.id]
    return LayoutResult(mode, positions, recomputed)
