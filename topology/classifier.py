"""
Interface role classification
"""

from collections import Counter
from collections.abc import Mapping
from typing import Iterable, Union

from .models import InterfaceRecord, Role

BRIDGE_TYPES = ('linux-bridge', 'ovs-bridge')
OVS_INTERFACE = 'ovs-interface'

_RAW_ROLES = {
    'ethernet': Role.ETHERNET,
    'bond': Role.BOND,
    'vlan': Role.VLAN,
    'mac-vlan': Role.MAC_VLAN,
}


def child_counts(interfaces: Iterable[InterfaceRecord]) -> Counter:
    """Count, per interface name, how many interfaces name it as controller or master"""
    counts = Counter()
    for iface in interfaces:
        # controller and master may both be set; the interface is one child either way
        for parent in {iface.controller, iface.master}:
            if parent and parent != iface.name:
                counts[parent] += 1
    return counts


def classify(iface: InterfaceRecord,
             all_interfaces: Union[Iterable[InterfaceRecord], Mapping[str, int]]) -> Role:
    """Decide the topological role of an interface.

    ``all_interfaces`` is either the full interface collection or the result of
    ``child_counts`` over it; the latter avoids rescanning the collection for
    every interface when classifying a whole node.
    """
    if iface.type in BRIDGE_TYPES:
        return Role.BRIDGE

    if iface.type == OVS_INTERFACE:
        counts = all_interfaces if isinstance(all_interfaces, Mapping) else child_counts(all_interfaces)
        if counts.get(iface.name, 0) > 0 and not iface.patch:
            return Role.BRIDGE
        return Role.LOGICAL

    return _RAW_ROLES.get(iface.type, Role.OTHER)
