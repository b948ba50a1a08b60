"""Tests for interface role classification."""

import pytest

from topology.classifier import child_counts, classify
from topology.models import Role

from conftest import make_interface


class TestClassifyByType:
    """Roles that follow directly from the interface type."""

    @pytest.mark.parametrize('iface_type', ['linux-bridge', 'ovs-bridge'])
    def test_bridges(self, iface_type):
        iface = make_interface('br0', iface_type)
        assert classify(iface, [iface]) == Role.BRIDGE

    @pytest.mark.parametrize('iface_type,role', [
        ('ethernet', Role.ETHERNET),
        ('bond', Role.BOND),
        ('vlan', Role.VLAN),
        ('mac-vlan', Role.MAC_VLAN),
    ])
    def test_raw_types(self, iface_type, role):
        iface = make_interface('x', iface_type)
        assert classify(iface, [iface]) == role

    @pytest.mark.parametrize('iface_type', ['loopback', 'veth', 'unknown', 'dummy'])
    def test_unrecognised_types_are_other(self, iface_type):
        iface = make_interface('x', iface_type)
        assert classify(iface, [iface]) == Role.OTHER


class TestClassifyOvsInterface:
    """ovs-interface is a bridge only with children and without a patch field."""

    def test_without_children_is_logical(self):
        iface = make_interface('ovs0', 'ovs-interface')
        assert classify(iface, [iface]) == Role.LOGICAL

    def test_with_child_is_bridge(self):
        iface = make_interface('ovs0', 'ovs-interface')
        child = make_interface('eth0', 'ethernet', controller='ovs0')
        assert classify(iface, [iface, child]) == Role.BRIDGE

    def test_with_master_child_is_bridge(self):
        iface = make_interface('ovs0', 'ovs-interface')
        child = make_interface('eth0', 'ethernet', master='ovs0')
        assert classify(iface, [child, iface]) == Role.BRIDGE

    def test_patch_is_never_bridge(self):
        iface = make_interface('patch0', 'ovs-interface', patch={'peer': 'patch1'})
        children = [make_interface(f'eth{i}', 'ethernet', controller='patch0') for i in range(3)]
        assert classify(iface, [iface] + children) == Role.LOGICAL

    def test_self_reference_is_not_a_child(self):
        """An internal port naming itself as controller has no children."""
        iface = make_interface('br-ex', 'ovs-interface', controller='br-ex')
        assert classify(iface, [iface]) == Role.LOGICAL

    def test_precomputed_counts(self):
        """classify accepts child counts instead of the interface list."""
        iface = make_interface('ovs0', 'ovs-interface')
        interfaces = [iface, make_interface('eth0', 'ethernet', controller='ovs0')]
        counts = child_counts(interfaces)

        assert counts['ovs0'] == 1
        assert classify(iface, counts) == classify(iface, interfaces) == Role.BRIDGE


def test_classification_is_deterministic(sample_nns):
    from topology.loader import parse_node_network_state

    interfaces, _ = parse_node_network_state(sample_nns)
    first = [classify(i, interfaces) for i in interfaces]
    second = [classify(i, list(reversed(interfaces))) for i in interfaces]
    assert first == second


def test_child_counts_controller_and_master_same_parent():
    """An interface naming the same parent twice counts once."""
    counts = child_counts([make_interface('eth0', controller='br0', master='br0')])
    assert counts['br0'] == 1
