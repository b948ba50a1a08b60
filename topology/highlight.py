"""
Upstream and downstream reachability from a selected node
"""

from typing import FrozenSet, Set

from .graph import TopologyGraph

UPSTREAM = 'upstream'
DOWNSTREAM = 'downstream'


def _traverse(topology: TopologyGraph, start: str, direction: str, path: Set[str]):
    """Depth-first walk from start in one direction, collecting node and edge ids into path"""
    graph = topology.graph
    visited = set()
    stack = [start]

    while stack:
        node = stack.pop()
        if node in visited:
            continue
        visited.add(node)
        path.add(node)

        if direction == UPSTREAM:
            edges = graph.in_edges(node, data='id')
        else:
            edges = graph.out_edges(node, data='id')

        for source, target, eid in edges:
            path.add(eid)
            next_node = source if direction == UPSTREAM else target
            if next_node not in visited:
                stack.append(next_node)


def flow_path(topology: TopologyGraph, start_node_id: str) -> FrozenSet[str]:
    """Node and edge ids on every path leading into or out of start_node_id.

    An id that is not part of the graph, for instance a stale selection from
    before a rebuild, gives an empty set.
    """
    if not topology.has_node(start_node_id):
        return frozenset()

    path: Set[str] = set()
    _traverse(topology, start_node_id, UPSTREAM, path)
    _traverse(topology, start_node_id, DOWNSTREAM, path)
    return frozenset(path)
