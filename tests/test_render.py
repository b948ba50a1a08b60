"""Tests for node details and rendered views."""

import xml.etree.ElementTree as ET

import pytest

from topology.graph import build_graph
from topology.layout import DagLayoutEngine, LayeredLayoutEngine
from topology.loader import parse_cudns, parse_node_network_state
from topology.models import Layout
from topology.render import describe_node, render_png, render_svg
from topology.selection import IDLE

from conftest import make_interface

SVG_NS = '{http://www.w3.org/2000/svg}'


@pytest.fixture
def sample_graph(sample_nns, sample_cudn_list):
    interfaces, mappings = parse_node_network_state(sample_nns)
    return build_graph(interfaces, mappings, parse_cudns(sample_cudn_list))


class TestDescribeNode:

    def test_interface(self, sample_graph):
        details = dict(describe_node(sample_graph.node('eno1')))

        assert details['Type'] == 'ethernet'
        assert details['State'] == 'up'
        assert details['MAC Address'] == '52:54:00:AA:00:01'
        assert details['MTU'] == '1500'
        assert details['Controller'] == 'bond0'
        assert 'IPv4' not in details

    def test_interface_ipv4(self, sample_graph):
        details = dict(describe_node(sample_graph.node('ovn-k8s-mp0')))
        assert details['IPv4'] == '10.128.0.2/23'

    def test_bridge_mapping(self, sample_graph):
        details = describe_node(sample_graph.node('ovn-physnet'))
        assert details[:2] == [('Name', 'physnet'), ('Type', 'OVN Localnet')]

    def test_cudn(self, sample_graph):
        details = dict(describe_node(sample_graph.node('cudn-localnet-a')))
        assert details['Type'] == 'CUDN'
        assert details['State'] == 'Localnet'
        assert details['Physical Network'] == 'physnet'

    def test_attachment(self, sample_graph):
        details = dict(describe_node(sample_graph.node('attachment-localnet-a')))
        assert details['Namespaces'] == 'team-a, team-b, team-c, team-d'
        assert details['Name'] == 'NS: team-a, team-b, team-c...'


class TestRenderSvg:

    @pytest.mark.parametrize('engine_class', [DagLayoutEngine, LayeredLayoutEngine])
    def test_well_formed(self, engine_class, sample_graph):
        svg = render_svg(sample_graph, engine_class().layout(sample_graph))
        root = ET.fromstring(svg.encode('utf-8'))

        nodes = root.findall(f".//{SVG_NS}g[@class='node']")
        assert len(nodes) == len(sample_graph)

    def test_highlight_dims_other_nodes(self, sample_graph):
        layout = DagLayoutEngine().layout(sample_graph)
        selection = IDLE.select(sample_graph, 'eno1')
        root = ET.fromstring(render_svg(sample_graph, layout, selection).encode('utf-8'))

        opacity = {g.get('data-id'): g.get('opacity') for g in root.iter(f'{SVG_NS}g') if g.get('data-id')}
        assert opacity['eno1'] == '1.0'
        assert opacity['br-ex'] == '1.0'
        assert opacity['eno2'] == '0.3'

    def test_emphasized_edge_animated(self, sample_graph):
        layout = DagLayoutEngine().layout(sample_graph)
        root = ET.fromstring(render_svg(sample_graph, layout).encode('utf-8'))

        paths = {p.get('id'): p.get('class') for p in root.iter(f'{SVG_NS}path') if p.get('id')}
        assert 'edge-animated' in paths['cudn-localnet-a-attachment-localnet-a']
        assert 'edge-animated' not in paths['eno1-bond0']

    def test_self_loop_drawn_as_arc(self):
        topology = build_graph([make_interface('br-ex', 'ovs-interface', controller='br-ex')], [], [])
        root = ET.fromstring(render_svg(topology, DagLayoutEngine().layout(topology)).encode('utf-8'))

        paths = {p.get('id'): p.get('d') for p in root.iter(f'{SVG_NS}path') if p.get('id')}
        assert ' C ' in paths['br-ex-br-ex']

    def test_empty_graph(self):
        svg = render_svg(build_graph([], [], []), Layout())
        assert 'No Network Interfaces Found' in svg


class TestRenderPng:

    def test_png_bytes(self, sample_graph):
        layout = LayeredLayoutEngine().layout(sample_graph)
        png = render_png(sample_graph, layout, IDLE.select(sample_graph, 'br-ex'))
        assert png.startswith(b'\x89PNG')

    def test_self_loop_png(self):
        topology = build_graph([
            make_interface('br-ex', 'ovs-interface', controller='br-ex'),
            make_interface('eth0', controller='br-ex'),
        ], [], [])
        png = render_png(topology, DagLayoutEngine().layout(topology), IDLE.select(topology, 'br-ex'))
        assert png.startswith(b'\x89PNG')

    def test_empty_png(self):
        png = render_png(build_graph([], [], []), Layout())
        assert png.startswith(b'\x89PNG')
