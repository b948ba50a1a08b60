#!/usr/bin/env python3
"""
Topology Graph Builder
Derives a directed graph of interfaces, OVN bridge mappings, network definitions
and namespace attachments from the resources of a single node
"""

import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import networkx as nx

from .classifier import child_counts, classify
from .models import (BridgeMapping, GraphEdge, GraphNode, InterfaceRecord,
                     NetworkDefinition, Role, edge_id)

logger = logging.getLogger(__name__)

ATTACHMENT_LABEL_LIMIT = 3


def ovn_node_id(localnet: str) -> str:
    return f"ovn-{localnet}"


def cudn_node_id(name: str) -> str:
    return f"cudn-{name}"


def attachment_node_id(cudn_name: str) -> str:
    return f"attachment-{cudn_name}"


def attachment_label(namespaces: Sequence[str]) -> str:
    """Summarise a namespace list, listing at most three names"""
    if len(namespaces) > ATTACHMENT_LABEL_LIMIT:
        return f"NS: {', '.join(namespaces[:ATTACHMENT_LABEL_LIMIT])}..."
    return f"NS: {', '.join(namespaces)}"


class TopologyGraph:
    """Directed topology graph backed by a NetworkX DiGraph.

    Nodes carry ``role``, ``label`` and ``origin`` attributes; edges carry an
    ``emphasized`` flag. Iteration order is creation order.
    """

    def __init__(self):
        self.graph = nx.DiGraph()
        self._edge_ids = set()

    def add_node(self, node_id: str, role: Role, label: str, origin=None):
        """Add a node, replacing any node previously created with the same id"""
        if node_id in self.graph:
            logger.debug(f"Node id collision on {node_id}, replacing earlier node")
        self.graph.add_node(node_id, role=role, label=label, origin=origin)

    def add_edge(self, source: str, target: str, emphasized: bool = False) -> bool:
        """Add an edge between two existing nodes; returns False if it was not added"""
        if source not in self.graph or target not in self.graph:
            logger.debug(f"Dropping dangling edge {source} -> {target}")
            return False
        if self.graph.has_edge(source, target):
            return False
        # Hyphenated names can spell the same id for two different pairs
        new_id = edge_id(source, target)
        if new_id in self._edge_ids:
            logger.debug(f"Dropping edge {source} -> {target}, id {new_id} already used")
            return False
        self._edge_ids.add(new_id)
        self.graph.add_edge(source, target, id=new_id, emphasized=emphasized)
        return True

    def has_node(self, node_id: str) -> bool:
        return node_id in self.graph

    def node(self, node_id: str) -> Optional[GraphNode]:
        if node_id not in self.graph:
            return None
        data = self.graph.nodes[node_id]
        return GraphNode(id=node_id, role=data['role'], label=data['label'], origin=data['origin'])

    @property
    def nodes(self) -> List[GraphNode]:
        return [
            GraphNode(id=n, role=d['role'], label=d['label'], origin=d['origin'])
            for n, d in self.graph.nodes(data=True)
        ]

    @property
    def edges(self) -> List[GraphEdge]:
        return [
            GraphEdge(source=u, target=v, emphasized=d.get('emphasized', False))
            for u, v, d in self.graph.edges(data=True)
        ]

    def node_ids(self) -> List[str]:
        return list(self.graph.nodes)

    def edge_ids(self) -> List[str]:
        return [d['id'] for _, _, d in self.graph.edges(data=True)]

    def __len__(self) -> int:
        return self.graph.number_of_nodes()

    def summary(self) -> Dict:
        """Generate summary statistics about the topology"""
        roles = Counter(d['role'].value for _, d in self.graph.nodes(data=True))
        return {
            'total_nodes': self.graph.number_of_nodes(),
            'total_edges': self.graph.number_of_edges(),
            'emphasized_edges': sum(1 for _, _, d in self.graph.edges(data=True) if d.get('emphasized')),
            'nodes_by_role': dict(sorted(roles.items())),
            'isolated_nodes': sorted(nx.isolates(self.graph)),
        }

    def to_dict(self) -> Dict:
        return {
            'nodes': [
                {'id': node.id, 'role': node.role.value, 'label': node.label}
                for node in self.nodes
            ],
            'edges': [
                {'id': edge.id, 'source': edge.source, 'target': edge.target,
                 'emphasized': edge.emphasized}
                for edge in self.edges
            ],
        }


def build_graph(interfaces: Iterable[InterfaceRecord],
                bridge_mappings: Iterable[BridgeMapping],
                cudns: Iterable[NetworkDefinition]) -> TopologyGraph:
    """Build the topology graph of a node from its three resource collections.

    Nodes are created in four passes (interfaces, bridge mappings, network
    definitions, attachments). Edges are collected along the way and only
    added once every node exists, so an edge naming an unknown node is dropped
    instead of dangling.
    """
    interfaces = list(interfaces)
    bridge_mappings = list(bridge_mappings)
    cudns = list(cudns)

    topology = TopologyGraph()
    pending: List[Tuple[str, str, bool]] = []

    _add_interfaces(topology, interfaces, pending)
    _add_bridge_mappings(topology, bridge_mappings, pending)
    _add_network_definitions(topology, cudns, pending)
    _add_attachments(topology, cudns, pending)

    for source, target, emphasized in pending:
        topology.add_edge(source, target, emphasized)

    return topology


def _add_interfaces(topology: TopologyGraph, interfaces: List[InterfaceRecord],
                    pending: List[Tuple[str, str, bool]]):
    counts = child_counts(interfaces)
    for iface in interfaces:
        topology.add_node(iface.name, classify(iface, counts), iface.name, origin=iface)

        # A port points at its bond or bridge
        if iface.container:
            pending.append((iface.name, iface.container, False))

        # A VLAN is pointed at by the interface it is derived from
        if iface.base_iface:
            pending.append((iface.base_iface, iface.name, False))


def _add_bridge_mappings(topology: TopologyGraph, bridge_mappings: List[BridgeMapping],
                         pending: List[Tuple[str, str, bool]]):
    for mapping in bridge_mappings:
        node_id = ovn_node_id(mapping.localnet)
        topology.add_node(node_id, Role.OVN_MAPPING, f"OVN: {mapping.localnet}", origin=mapping)
        if mapping.bridge:
            pending.append((mapping.bridge, node_id, False))


def _add_network_definitions(topology: TopologyGraph, cudns: List[NetworkDefinition],
                             pending: List[Tuple[str, str, bool]]):
    for cudn in cudns:
        node_id = cudn_node_id(cudn.name)
        topology.add_node(node_id, Role.CUDN, cudn.name, origin=cudn)
        if cudn.physical_network_name:
            pending.append((ovn_node_id(cudn.physical_network_name), node_id, False))


def _add_attachments(topology: TopologyGraph, cudns: List[NetworkDefinition],
                     pending: List[Tuple[str, str, bool]]):
    for cudn in cudns:
        namespaces = cudn.attached_namespaces()
        if not namespaces:
            continue
        node_id = attachment_node_id(cudn.name)
        topology.add_node(node_id, Role.ATTACHMENT, attachment_label(namespaces), origin=namespaces)
        pending.append((cudn_node_id(cudn.name), node_id, True))
