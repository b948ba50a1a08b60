#!/usr/bin/env python3
import asyncio
import logging
import os
import sys
import time
from typing import Dict, Optional, Tuple

import yaml
from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

from topology.exceptions import ResourceLoadError
from topology.highlight import flow_path
from topology.layout import get_layout_engine
from topology.loader import load_resources
from topology.models import Role
from topology.render import describe_node, render_png, render_svg
from topology.selection import IDLE, SelectionState
from topology.snapshot import TopologyCache, TopologySnapshot

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

VERSION_FILE = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'VERSION')


def read_version(path: str = VERSION_FILE) -> str:
    """Release version from the VERSION file at the project root"""
    try:
        with open(path, 'r') as f:
            return f.read().strip() or 'unknown'
    except OSError as e:
        logger.warning(f"Cannot read version from {path}: {e}")
        return 'unknown'


class TopologyViewer:
    def __init__(self, config_path: Optional[str] = None):
        # Load configuration from file or environment variables
        if config_path and os.path.exists(config_path):
            with open(config_path, 'r') as f:
                self.config = yaml.safe_load(f) or {}

            viewer = self.config.get('viewer') or {}
            server = viewer.get('server') or {}
            sources = viewer.get('sources') or {}
            layout = viewer.get('layout') or {}

            self.server_host = server.get('host', '0.0.0.0')
            self.server_port = int(server.get('port', 8780))
            self.nns_path = sources.get('node_network_state', 'nns.yaml')
            self.cudn_path = sources.get('cudns')
            self.layout_name = layout.get('engine', 'dag')
            self.layout_options = layout.get('options') or {}
            self.log_level = (viewer.get('logging') or {}).get('level', 'INFO')
        else:
            self.config = {}
            self.server_host = os.getenv('NNSTOPO_SERVER_HOST', '0.0.0.0')
            self.server_port = int(os.getenv('NNSTOPO_SERVER_PORT', '8780'))
            self.nns_path = os.getenv('NNSTOPO_NNS_PATH', 'nns.yaml')
            self.cudn_path = os.getenv('NNSTOPO_CUDN_PATH') or None
            self.layout_name = os.getenv('NNSTOPO_LAYOUT', 'dag')
            self.layout_options = {}
            self.log_level = os.getenv('NNSTOPO_LOG_LEVEL', 'INFO')

        logging.getLogger().setLevel(self.log_level.upper())

        # Raises ValueError for an unknown engine name before the server starts
        self.cache = TopologyCache(get_layout_engine(self.layout_name, **self.layout_options))
        self.selection: SelectionState = IDLE
        self.last_error: Optional[str] = None
        self.version = read_version()

        # Prometheus metrics
        self.graph_rebuilds = Counter(
            'nnstopo_graph_rebuilds_total',
            'Number of times the topology graph was rebuilt'
        )

        self.graph_build_seconds = Histogram(
            'nnstopo_graph_build_seconds',
            'Time spent building the topology graph and its layout'
        )

        self.graph_nodes = Gauge(
            'nnstopo_graph_nodes',
            'Number of nodes in the topology graph',
            ['role']
        )

        self.graph_edges = Gauge(
            'nnstopo_graph_edges',
            'Number of edges in the topology graph'
        )

        self.source_load_errors = Counter(
            'nnstopo_source_load_errors_total',
            'Number of failed attempts to load resource files'
        )

        logger.info(f"Topology viewer configured: nns={self.nns_path} cudns={self.cudn_path} "
                    f"layout={self.layout_name}")

    @property
    def snapshot(self) -> TopologySnapshot:
        return self.cache.snapshot

    def refresh(self) -> Optional[str]:
        """Reload resource files and rebuild the topology if they changed.

        Returns an error message when loading failed; the previous snapshot is
        kept in that case.
        """
        try:
            inputs = load_resources(self.nns_path, self.cudn_path)
        except ResourceLoadError as e:
            if self.last_error != str(e):
                logger.error(f"Failed to load resources: {e}")
            self.last_error = str(e)
            self.source_load_errors.inc()
            return self.last_error

        self.last_error = None
        previous = self.cache.snapshot.generation
        snapshot = self.cache.update_inputs(inputs)

        if snapshot.generation != previous:
            self.selection = self.selection.refresh(snapshot.graph)
            self._record_snapshot_metrics(snapshot)
        return None

    def _record_snapshot_metrics(self, snapshot: TopologySnapshot):
        self.graph_rebuilds.inc()
        self.graph_build_seconds.observe(snapshot.build_seconds)
        counts = snapshot.graph.summary()['nodes_by_role']
        for role in Role:
            self.graph_nodes.labels(role=role.value).set(counts.get(role.value, 0))
        self.graph_edges.set(len(snapshot.graph.edges))

    def topology_data(self) -> Dict:
        """Nodes with positions and opacity, edges, canvas size and highlight state"""
        snapshot = self.snapshot
        selection = self.selection

        nodes = []
        for node in snapshot.graph.nodes:
            position = snapshot.layout.position(node.id)
            nodes.append({
                'id': node.id,
                'role': node.role.value,
                'label': node.label,
                'x': float(position.x) if position else 0.0,
                'y': float(position.y) if position else 0.0,
                'opacity': selection.node_opacity(node.id),
            })

        edges = []
        for edge in snapshot.graph.edges:
            edges.append({
                'id': edge.id,
                'source': edge.source,
                'target': edge.target,
                'emphasized': edge.emphasized,
                'highlighted': selection.contains(edge.id),
                'opacity': selection.edge_opacity(edge.id),
            })

        return {
            'nodes': nodes,
            'edges': edges,
            'canvas': {'width': snapshot.layout.width, 'height': snapshot.layout.height},
            'layout': self.cache.layout_engine.name,
            'generation': snapshot.generation,
            'summary': snapshot.graph.summary(),
            'highlight': selection.to_dict(),
        }

    async def health_check(self, request):
        """Health check endpoint"""
        error = self.refresh()
        snapshot = self.snapshot
        body = {
            'status': 'unhealthy' if error else 'healthy',
            'version': self.version,
            'generation': snapshot.generation,
            'nodes': len(snapshot.graph),
            'edges': len(snapshot.graph.edges),
            'timestamp': time.time()
        }
        if error:
            body['error'] = error
            return web.json_response(body, status=503)
        return web.json_response(body)

    async def get_topology(self, request):
        """Get the topology graph with its layout and highlight state"""
        try:
            error = self.refresh()
            if error:
                return web.json_response({'error': error}, status=503)

            data = self.topology_data()
            data['timestamp'] = time.time()
            return web.json_response(data)

        except Exception as e:
            logger.error(f"Failed to get topology: {e}")
            return web.json_response({'error': str(e)}, status=500)

    async def get_topology_svg(self, request):
        """Generate SVG visualization of the topology"""
        try:
            error = self.refresh()
            if error:
                logger.warning(f"Rendering last good topology: {error}")

            snapshot = self.snapshot
            svg_content = render_svg(snapshot.graph, snapshot.layout, self.selection)

            return web.Response(
                text=svg_content,
                content_type='image/svg+xml',
                headers={'Cache-Control': 'no-cache'}
            )

        except Exception as e:
            logger.error(f"Failed to generate topology SVG: {e}")
            return web.Response(text=f"Error generating topology: {str(e)}", status=500)

    async def get_topology_png(self, request):
        """Generate PNG rendering of the topology"""
        try:
            error = self.refresh()
            if error:
                logger.warning(f"Rendering last good topology: {error}")

            snapshot = self.snapshot
            png = render_png(snapshot.graph, snapshot.layout, self.selection)

            return web.Response(
                body=png,
                content_type='image/png',
                headers={'Cache-Control': 'no-cache'}
            )

        except Exception as e:
            logger.error(f"Failed to generate topology PNG: {e}")
            return web.Response(text=f"Error generating topology: {str(e)}", status=500)

    async def get_highlight(self, request):
        """Get the flow path of a node without changing the selection"""
        node_id = request.query.get('node')
        if not node_id:
            return web.json_response({'error': 'Missing required parameter: node'}, status=400)

        self.refresh()
        path = flow_path(self.snapshot.graph, node_id)
        return web.json_response({
            'node': node_id,
            'found': self.snapshot.graph.has_node(node_id),
            'path': sorted(path),
        })

    async def get_node_details(self, request):
        """Describe a single node for inspection"""
        node_id = request.match_info['node_id']
        self.refresh()

        node = self.snapshot.graph.node(node_id)
        if node is None:
            return web.json_response({'error': f'node {node_id} not found'}, status=404)

        return web.json_response({
            'id': node.id,
            'role': node.role.value,
            'label': node.label,
            'details': [{'term': term, 'value': value} for term, value in describe_node(node)],
        })

    async def select_node(self, request):
        """Select a node and highlight its upstream and downstream path"""
        try:
            data = await request.json()
        except ValueError:
            return web.json_response({'error': 'Request body must be JSON'}, status=400)

        node_id = data.get('node_id') if isinstance(data, dict) else None
        if not node_id:
            return web.json_response({'error': 'Missing required field: node_id'}, status=400)

        self.refresh()
        self.selection = self.selection.select(self.snapshot.graph, node_id)
        logger.debug(f"Selected {node_id}, {len(self.selection.path)} elements highlighted")
        return web.json_response(self.selection.to_dict())

    async def clear_selection(self, request):
        """Clear the selection and switch highlighting off"""
        self.selection = self.selection.clear()
        return web.json_response(self.selection.to_dict())

    async def get_metrics(self, request):
        """Prometheus metrics endpoint"""
        return web.Response(
            body=generate_latest(),
            headers={'Content-Type': CONTENT_TYPE_LATEST}
        )


async def init_app(config_path: Optional[str] = None) -> Tuple[web.Application, TopologyViewer]:
    viewer = TopologyViewer(config_path)

    # Build the first snapshot before serving
    error = viewer.refresh()
    if error:
        logger.warning(f"Starting without topology data: {error}")

    app = web.Application()

    app.router.add_get('/health', viewer.health_check)
    app.router.add_get('/metrics', viewer.get_metrics)

    # Topology endpoints
    app.router.add_get('/topology', viewer.get_topology)
    app.router.add_get('/topology/svg', viewer.get_topology_svg)
    app.router.add_get('/topology/png', viewer.get_topology_png)
    app.router.add_get('/topology/highlight', viewer.get_highlight)
    app.router.add_get('/nodes/{node_id}', viewer.get_node_details)
    app.router.add_post('/select', viewer.select_node)
    app.router.add_post('/clear', viewer.clear_selection)

    return app, viewer


async def serve(config_path: Optional[str] = None):
    app, viewer = await init_app(config_path)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(
        runner,
        host=viewer.server_host,
        port=viewer.server_port
    )
    await site.start()
    logger.info(f"Topology viewer {viewer.version} listening on {viewer.server_host}:{viewer.server_port}")

    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()


def main():
    """Console entry point: ``nnstopo-viewer [config.yaml]`` or ``python -m viewer.main [config.yaml]``"""
    config_path = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        asyncio.run(serve(config_path))
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == '__main__':
    main()
