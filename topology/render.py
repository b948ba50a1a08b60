"""
Rendering helpers: node details, SVG and PNG views of a topology snapshot
"""

import io
import logging
from typing import Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend for server environments
import matplotlib.pyplot as plt
import networkx as nx

from .graph import TopologyGraph
from .layout import NODE_HEIGHT, NODE_WIDTH
from .models import (BridgeMapping, GraphNode, InterfaceRecord, Layout,
                     NetworkDefinition, Role)
from .selection import IDLE, SelectionState

logger = logging.getLogger(__name__)

DEFAULT_STYLE = {'border': '#777777', 'background': '#ffffff'}

ROLE_STYLES = {
    Role.ETHERNET: {'border': '#0066CC', 'background': '#ffffff'},
    Role.BOND: {'border': '#663399', 'background': '#ffffff'},
    Role.VLAN: {'border': '#9933CC', 'background': '#ffffff'},
    Role.MAC_VLAN: {'border': '#9933CC', 'background': '#ffffff'},
    Role.BRIDGE: {'border': '#FF6600', 'background': '#ffffff'},
    Role.LOGICAL: {'border': '#0099CC', 'background': '#ffffff'},
    Role.OVN_MAPPING: {'border': '#009900', 'background': '#f0fff0'},
    Role.CUDN: {'border': '#CC0099', 'background': '#fff0f5'},
    Role.ATTACHMENT: {'border': '#F0AB00', 'background': '#fffff0'},
}

EDGE_COLOR = '#b1b1b1'
EDGE_HIGHLIGHT_COLOR = '#0066CC'
EDGE_DIMMED_COLOR = '#cccccc'


def role_style(role: Role) -> Dict[str, str]:
    return ROLE_STYLES.get(role, DEFAULT_STYLE)


def describe_node(node: GraphNode) -> List[Tuple[str, str]]:
    """Details shown when a node is inspected, as ordered (term, value) pairs"""
    origin = node.origin
    details: List[Tuple[str, Optional[str]]] = []

    if isinstance(origin, InterfaceRecord):
        details = [
            ('Name', origin.name),
            ('Type', origin.type),
            ('State', origin.state or 'N/A'),
            ('MAC Address', origin.mac_address),
            ('MTU', str(origin.mtu) if origin.mtu is not None else None),
            ('IPv4', str(origin.ipv4_addresses[0]) if origin.ipv4_addresses else None),
            ('Controller', origin.container),
        ]
    elif isinstance(origin, BridgeMapping):
        details = [
            ('Name', origin.localnet),
            ('Type', 'OVN Localnet'),
            ('State', 'N/A'),
            ('Bridge', origin.bridge),
        ]
    elif isinstance(origin, NetworkDefinition):
        details = [
            ('Name', origin.name),
            ('Type', 'CUDN'),
            ('State', origin.topology or 'N/A'),
            ('Physical Network', origin.physical_network_name),
        ]
    elif node.role == Role.ATTACHMENT:
        details = [
            ('Name', node.label),
            ('Type', 'attachment'),
            ('State', 'N/A'),
            ('Namespaces', ', '.join(node.namespaces)),
        ]
    else:
        details = [('Name', node.label), ('Type', node.role.value), ('State', 'N/A')]

    return [(term, value) for term, value in details if value]


SVG_STYLE = '''
<defs>
    <style>
        <![CDATA[
        .node-box {
            stroke-width: 2;
            rx: 5;
            ry: 5;
            cursor: pointer;
            transition: opacity 0.2s ease, filter 0.2s ease;
        }
        .node-box:hover {
            filter: drop-shadow(0 2px 6px rgba(88, 166, 255, 0.6));
        }
        .node-label {
            fill: #1f2328;
            font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
            font-size: 13px;
            font-weight: 600;
            text-anchor: middle;
            dominant-baseline: central;
            pointer-events: none;
        }
        .node-role {
            fill: #57606a;
            font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
            font-size: 10px;
            text-anchor: middle;
            pointer-events: none;
        }
        .edge {
            fill: none;
            transition: stroke 0.2s ease, stroke-width 0.2s ease, opacity 0.2s ease;
        }
        .edge-animated {
            stroke-dasharray: 5;
            animation: dashdraw 0.5s linear infinite;
        }
        @keyframes dashdraw {
            from { stroke-dashoffset: 10; }
        }
        ]]>
    </style>
    <marker id="arrow" viewBox="0 0 10 10" refX="10" refY="5"
            markerWidth="8" markerHeight="8" orient="auto-start-reverse">
        <path d="M 0 0 L 10 5 L 0 10 z" fill="context-stroke"/>
    </marker>
</defs>'''


def _attr(value: str) -> str:
    return escape(value, {'"': '&quot;'})


def _empty_svg() -> str:
    return '''<?xml version="1.0" encoding="UTF-8"?>
<svg width="800" height="480" viewBox="0 0 800 480" xmlns="http://www.w3.org/2000/svg">
<rect width="100%" height="100%" fill="#0d1117"/>
<text x="400" y="220" text-anchor="middle" dominant-baseline="central"
      fill="#f0f6fc" font-family="system-ui" font-size="20" font-weight="600">
    No Network Interfaces Found
</text>
<text x="400" y="260" text-anchor="middle" dominant-baseline="central"
      fill="#8b949e" font-family="system-ui" font-size="14">
    The NodeNetworkState does not contain any interfaces to visualize.
</text>
</svg>'''


def _edge_path(source, target, loop: bool = False) -> str:
    """Orthogonal path from the right side of source to the left side of target"""
    if loop:
        # Arc over the top right corner of the box
        x, y = source.x + NODE_WIDTH - 30, source.y
        return f"M {x:.1f} {y:.1f} C {x:.1f} {y - 20:.1f} {x + 20:.1f} {y - 20:.1f} {x + 20:.1f} {y:.1f}"
    x1 = source.x + NODE_WIDTH
    y1 = source.y + NODE_HEIGHT / 2
    x2 = target.x
    y2 = target.y + NODE_HEIGHT / 2
    mid_x = (x1 + x2) / 2
    return f"M {x1:.1f} {y1:.1f} H {mid_x:.1f} V {y2:.1f} H {x2:.1f}"


def render_svg(topology: TopologyGraph, layout: Layout,
               selection: SelectionState = IDLE) -> str:
    """Generate an SVG document of the topology with selection highlighting"""
    if len(topology) == 0:
        return _empty_svg()

    width, height = layout.width, layout.height
    parts = [f'''<?xml version="1.0" encoding="UTF-8"?>
<svg width="{width:.0f}" height="{height:.0f}" viewBox="0 0 {width:.0f} {height:.0f}" xmlns="http://www.w3.org/2000/svg">''']
    parts.append(SVG_STYLE)
    parts.append('<rect width="100%" height="100%" fill="#0d1117"/>')

    # Draw edges first (behind nodes)
    parts.append('<g id="edges">')
    for edge in topology.edges:
        source = layout.position(edge.source)
        target = layout.position(edge.target)
        if source is None or target is None:
            continue

        if not selection.highlight_active:
            color, stroke_width = EDGE_COLOR, 1
        elif selection.contains(edge.id):
            color, stroke_width = EDGE_HIGHLIGHT_COLOR, 3
        else:
            color, stroke_width = EDGE_DIMMED_COLOR, 1

        animated = edge.emphasized or (selection.highlight_active and selection.contains(edge.id))
        css_class = 'edge edge-animated' if animated else 'edge'
        parts.append(f'''
    <path id="{_attr(edge.id)}" class="{css_class}" d="{_edge_path(source, target, loop=edge.source == edge.target)}"
          stroke="{color}" stroke-width="{stroke_width}" opacity="{selection.edge_opacity(edge.id)}"
          marker-end="url(#arrow)"/>''')
    parts.append('</g>')

    parts.append('<g id="nodes">')
    for node in topology.nodes:
        position = layout.position(node.id)
        if position is None:
            continue
        style = role_style(node.role)
        cx = position.x + NODE_WIDTH / 2
        cy = position.y + NODE_HEIGHT / 2

        label = node.label
        if len(label) > 24:
            label = label[:24] + '...'

        parts.append(f'''
    <g class="node" data-id="{_attr(node.id)}" data-role="{node.role.value}" opacity="{selection.node_opacity(node.id)}">
        <rect class="node-box" x="{position.x:.1f}" y="{position.y:.1f}" width="{NODE_WIDTH}" height="{NODE_HEIGHT}"
              fill="{style['background']}" stroke="{style['border']}"/>
        <text class="node-label" x="{cx:.1f}" y="{cy - 6:.1f}">{escape(label)}</text>
        <text class="node-role" x="{cx:.1f}" y="{cy + 16:.1f}">{node.role.value}</text>
        <title>{escape(node.label)}</title>
    </g>''')
    parts.append('</g>')
    parts.append('</svg>')

    return ''.join(parts)


def render_png(topology: TopologyGraph, layout: Layout,
               selection: SelectionState = IDLE, dpi: int = 100) -> bytes:
    """Render the topology to PNG bytes with matplotlib"""
    width = max(layout.width, NODE_WIDTH) / dpi
    height = max(layout.height, NODE_HEIGHT) / dpi
    fig, ax = plt.subplots(figsize=(width, height), dpi=dpi)

    try:
        ax.set_axis_off()
        graph = topology.graph

        # Matplotlib's y axis points up, node positions are top-left anchored and point down
        pos = {
            node_id: (p.x + NODE_WIDTH / 2, -(p.y + NODE_HEIGHT / 2))
            for node_id, p in layout.positions.items()
            if node_id in graph
        }

        if not pos:
            ax.text(0.5, 0.5, 'No Network Interfaces Found',
                    ha='center', va='center', transform=ax.transAxes)
        else:
            _draw_edges(graph, pos, selection)
            _draw_nodes(topology, pos, selection)
            nx.draw_networkx_labels(graph, pos,
                                    labels={n: d['label'] for n, d in graph.nodes(data=True) if n in pos},
                                    font_size=8, ax=ax)
            ax.set_xlim(0, layout.width)
            ax.set_ylim(-layout.height, 0)

        buffer = io.BytesIO()
        fig.savefig(buffer, format='png', dpi=dpi)
        logger.debug(f"Rendered PNG of {len(pos)} nodes, {buffer.tell()} bytes")
        return buffer.getvalue()
    finally:
        plt.close(fig)


def _draw_nodes(topology: TopologyGraph, pos: Dict, selection: SelectionState):
    nodes = [node for node in topology.nodes if node.id in pos]
    nx.draw_networkx_nodes(topology.graph, pos,
                           nodelist=[node.id for node in nodes],
                           node_color=[role_style(node.role)['background'] for node in nodes],
                           edgecolors=[role_style(node.role)['border'] for node in nodes],
                           alpha=[selection.node_opacity(node.id) for node in nodes],
                           node_shape='s',
                           node_size=1800,
                           linewidths=2)


def _draw_edges(graph: nx.DiGraph, pos: Dict, selection: SelectionState):
    groups: Dict[Tuple[str, float, float, str], List] = {}
    for u, v, data in graph.edges(data=True):
        if u not in pos or v not in pos:
            continue
        eid = data['id']
        if not selection.highlight_active:
            color, width = EDGE_COLOR, 1.0
        elif selection.contains(eid):
            color, width = EDGE_HIGHLIGHT_COLOR, 3.0
        else:
            color, width = EDGE_DIMMED_COLOR, 1.0
        style = 'dashed' if data.get('emphasized') else 'solid'
        groups.setdefault((color, width, selection.edge_opacity(eid), style), []).append((u, v))

    for (color, width, alpha, style), edgelist in groups.items():
        nx.draw_networkx_edges(graph, pos, edgelist=edgelist,
                               edge_color=color, width=width, alpha=alpha, style=style,
                               arrows=True, arrowstyle='-|>', node_size=1800, node_shape='s')
