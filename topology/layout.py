"""
Layout engines for the topology graph

Both engines place nodes left to right in ranks and return top-left anchored
positions for fixed size node boxes. ``DagLayoutEngine`` ranks nodes by the
graph structure, ``LayeredLayoutEngine`` ranks them by role only.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List

import networkx as nx

from .graph import TopologyGraph
from .models import Layout, Position, Role

logger = logging.getLogger(__name__)

NODE_WIDTH = 180
NODE_HEIGHT = 60
MARGIN = 20


class LayoutEngine(ABC):
    name = 'abstract'

    @abstractmethod
    def layout(self, topology: TopologyGraph) -> Layout:
        """Assign a position to every node of the graph"""


class DagLayoutEngine(LayoutEngine):
    """Hierarchical left-to-right layout.

    Ranks follow the longest path from a source node, with strongly connected
    components collapsed first so that malformed cyclic input still gets a
    layering. Within a rank, nodes start in creation order and are reordered by
    barycenter sweeps to reduce crossings.
    """

    name = 'dag'

    def __init__(self, rank_sep: int = 50, node_sep: int = 50, sweeps: int = 4):
        self.rank_sep = rank_sep
        self.node_sep = node_sep
        self.sweeps = sweeps

    def layout(self, topology: TopologyGraph) -> Layout:
        graph = topology.graph
        if graph.number_of_nodes() == 0:
            return Layout(positions={}, width=2 * MARGIN, height=2 * MARGIN)

        ranks = self._assign_ranks(graph)
        ordering = self._order_ranks(graph, ranks)

        rank_step = NODE_WIDTH + self.rank_sep
        row_step = NODE_HEIGHT + self.node_sep
        max_rows = max(len(layer) for layer in ordering)

        positions = {}
        for rank, layer in enumerate(ordering):
            # Shorter ranks are centred against the tallest one
            offset = (max_rows - len(layer)) * row_step / 2
            for row, node_id in enumerate(layer):
                center_x = MARGIN + rank * rank_step + NODE_WIDTH / 2
                center_y = MARGIN + offset + row * row_step + NODE_HEIGHT / 2
                positions[node_id] = Position(x=center_x - NODE_WIDTH / 2,
                                              y=center_y - NODE_HEIGHT / 2)

        width = 2 * MARGIN + len(ordering) * NODE_WIDTH + (len(ordering) - 1) * self.rank_sep
        height = 2 * MARGIN + max_rows * NODE_HEIGHT + (max_rows - 1) * self.node_sep
        return Layout(positions=positions, width=width, height=height)

    @staticmethod
    def _assign_ranks(graph: nx.DiGraph) -> Dict[str, int]:
        """Longest-path layering over the condensation of the graph"""
        condensed = nx.condensation(graph)
        members = condensed.graph['mapping']

        component_rank = {}
        for component in nx.topological_sort(condensed):
            component_rank[component] = max(
                (component_rank[p] + 1 for p in condensed.predecessors(component)),
                default=0,
            )
        return {node: component_rank[members[node]] for node in graph}

    def _order_ranks(self, graph: nx.DiGraph, ranks: Dict[str, int]) -> List[List[str]]:
        ordering: List[List[str]] = [[] for _ in range(max(ranks.values()) + 1)]
        for node in graph:
            ordering[ranks[node]].append(node)

        for _ in range(self.sweeps):
            for rank in range(1, len(ordering)):
                self._sort_by_barycenter(graph, ordering[rank], ordering[rank - 1])
            for rank in range(len(ordering) - 2, -1, -1):
                self._sort_by_barycenter(graph, ordering[rank], ordering[rank + 1])

        return ordering

    @staticmethod
    def _sort_by_barycenter(graph: nx.DiGraph, layer: List[str], fixed: List[str]):
        index = {node: i for i, node in enumerate(fixed)}
        current = {node: i for i, node in enumerate(layer)}

        def barycenter(node):
            neighbours = [index[n] for n in graph.predecessors(node) if n in index]
            neighbours += [index[n] for n in graph.successors(node) if n in index]
            if not neighbours:
                return float(current[node])
            return sum(neighbours) / len(neighbours)

        # list.sort is stable, so ties keep their previous order
        layer.sort(key=barycenter)


# Role layers of the manual layout, left to right
LAYERS = (
    (Role.ETHERNET, Role.OTHER),
    (Role.BOND, Role.VLAN, Role.MAC_VLAN),
    (Role.BRIDGE,),
    (Role.LOGICAL,),
    (Role.OVN_MAPPING,),
    (Role.CUDN,),
    (Role.ATTACHMENT,),
)

LAYER_INDEX = {role: i for i, roles in enumerate(LAYERS) for role in roles}


class LayeredLayoutEngine(LayoutEngine):
    """Fixed role layers: physical, bonds, bridges, logical ports, OVN mappings,
    network definitions, attachments. Edge direction plays no part in ranking."""

    name = 'layered'

    def __init__(self, layer_spacing: int = 250, row_spacing: int = 100):
        # Spacing below the box size would overlap neighbouring boxes
        self.layer_spacing = max(layer_spacing, NODE_WIDTH)
        self.row_spacing = max(row_spacing, NODE_HEIGHT)

    def layout(self, topology: TopologyGraph) -> Layout:
        layers: List[List[str]] = [[] for _ in LAYERS]
        for node in topology.nodes:
            layers[LAYER_INDEX.get(node.role, 0)].append(node.id)

        positions = {}
        for index, layer in enumerate(layers):
            for row, node_id in enumerate(layer):
                positions[node_id] = Position(x=MARGIN + index * self.layer_spacing,
                                              y=MARGIN + row * self.row_spacing)

        return Layout(positions=positions,
                      width=2 * MARGIN + (len(LAYERS) - 1) * self.layer_spacing + NODE_WIDTH,
                      height=self.canvas_height(layers))

    def canvas_height(self, layers: List[List[str]]) -> float:
        largest = max((len(layer) for layer in layers), default=0)
        return 2 * MARGIN + largest * self.row_spacing


LAYOUT_ENGINES = {
    DagLayoutEngine.name: DagLayoutEngine,
    LayeredLayoutEngine.name: LayeredLayoutEngine,
}


def get_layout_engine(name: str, **options) -> LayoutEngine:
    """Instantiate a layout engine by name ('dag' or 'layered')"""
    try:
        engine_class = LAYOUT_ENGINES[name]
    except KeyError:
        raise ValueError(f"Unknown layout engine '{name}', expected one of {sorted(LAYOUT_ENGINES)}")
    logger.debug(f"Using {name} layout engine with options {options}")
    return engine_class(**options)
