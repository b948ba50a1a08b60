"""
Selection and highlight state

Two states: Idle (nothing selected, highlight off) and Selected (a node id and
its flow path, highlight on). Transitions return new state objects.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from .graph import TopologyGraph
from .highlight import flow_path

DIMMED_NODE_OPACITY = 0.3
DIMMED_EDGE_OPACITY = 0.1


@dataclass(frozen=True)
class SelectionState:
    node_id: Optional[str] = None
    path: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def highlight_active(self) -> bool:
        return self.node_id is not None

    @property
    def is_idle(self) -> bool:
        return self.node_id is None

    def select(self, topology: TopologyGraph, node_id: str) -> 'SelectionState':
        return SelectionState(node_id=node_id, path=flow_path(topology, node_id))

    def clear(self) -> 'SelectionState':
        return IDLE

    def refresh(self, topology: TopologyGraph) -> 'SelectionState':
        """Recompute the path of the selected node against a rebuilt graph"""
        if self.is_idle:
            return self
        return self.select(topology, self.node_id)

    def contains(self, element_id: str) -> bool:
        return element_id in self.path

    def node_opacity(self, node_id: str) -> float:
        if not self.highlight_active or node_id in self.path:
            return 1.0
        return DIMMED_NODE_OPACITY

    def edge_opacity(self, edge_id: str) -> float:
        if not self.highlight_active or edge_id in self.path:
            return 1.0
        return DIMMED_EDGE_OPACITY

    def to_dict(self) -> dict:
        return {
            'selected': self.node_id,
            'highlight_active': self.highlight_active,
            'path': sorted(self.path),
        }


IDLE = SelectionState()
