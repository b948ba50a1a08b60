"""
Recompute the graph and layout when the input resources change
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

from .graph import TopologyGraph, build_graph
from .layout import LayoutEngine
from .models import BridgeMapping, InterfaceRecord, Layout, NetworkDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TopologyInputs:
    interfaces: Tuple[InterfaceRecord, ...] = ()
    bridge_mappings: Tuple[BridgeMapping, ...] = ()
    cudns: Tuple[NetworkDefinition, ...] = ()

    @classmethod
    def of(cls, interfaces: Iterable[InterfaceRecord],
           bridge_mappings: Iterable[BridgeMapping],
           cudns: Iterable[NetworkDefinition]) -> 'TopologyInputs':
        return cls(tuple(interfaces), tuple(bridge_mappings), tuple(cudns))


@dataclass(frozen=True)
class TopologySnapshot:
    """A graph together with the layout computed for it"""
    inputs: TopologyInputs = field(default_factory=TopologyInputs)
    graph: TopologyGraph = field(default_factory=TopologyGraph, compare=False)
    layout: Layout = field(default_factory=Layout, compare=False)
    generation: int = 0
    built_at: float = 0.0
    build_seconds: float = 0.0


class TopologyCache:
    """Holds the current snapshot and rebuilds it only when inputs change by value.

    A rebuild produces a complete new snapshot which replaces the old one in a
    single assignment, so a reader always sees a graph with its own layout.
    """

    def __init__(self, layout_engine: LayoutEngine):
        self.layout_engine = layout_engine
        self._snapshot = TopologySnapshot()

    @property
    def snapshot(self) -> TopologySnapshot:
        return self._snapshot

    def update(self, interfaces: Iterable[InterfaceRecord],
               bridge_mappings: Iterable[BridgeMapping],
               cudns: Iterable[NetworkDefinition]) -> TopologySnapshot:
        return self.update_inputs(TopologyInputs.of(interfaces, bridge_mappings, cudns))

    def update_inputs(self, inputs: TopologyInputs) -> TopologySnapshot:
        current = self._snapshot
        if current.generation > 0 and current.inputs == inputs:
            return current

        self._snapshot = self.rebuild(inputs, current.generation + 1)
        return self._snapshot

    def rebuild(self, inputs: TopologyInputs, generation: Optional[int] = None) -> TopologySnapshot:
        """Build a graph and layout from inputs without touching the current snapshot"""
        start = time.time()
        graph = build_graph(inputs.interfaces, inputs.bridge_mappings, inputs.cudns)
        layout = self.layout_engine.layout(graph)
        elapsed = time.time() - start

        logger.info(f"Built topology generation {generation}: {len(graph)} nodes, "
                    f"{len(graph.edges)} edges in {elapsed * 1000:.1f}ms "
                    f"({self.layout_engine.name} layout)")

        return TopologySnapshot(
            inputs=inputs,
            graph=graph,
            layout=layout,
            generation=generation if generation is not None else self._snapshot.generation,
            built_at=time.time(),
            build_seconds=elapsed,
        )
