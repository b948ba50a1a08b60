"""
Typed records for node network resources and the topology graph built from them

Raw Kubernetes resources (NodeNetworkState interfaces, OVN bridge mappings and
ClusterUserDefinedNetworks) arrive as loosely structured mappings. Every record
here is built through a ``from_dict`` constructor that performs checked lookups,
so optional fields are either present or explicitly ``None``.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

NETWORK_CREATED = 'NetworkCreated'

_NAMESPACE_LIST = re.compile(r'\[(.*?)\]')


def _mapping(value: Any) -> Mapping:
    """Return value if it is a mapping, otherwise an empty dict"""
    return value if isinstance(value, Mapping) else {}


def _text(value: Any) -> Optional[str]:
    """Return value as a non-empty string, or None"""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class Role(str, Enum):
    """Topological role of a graph node"""
    ETHERNET = 'ethernet'
    BOND = 'bond'
    VLAN = 'vlan'
    MAC_VLAN = 'mac-vlan'
    BRIDGE = 'bridge'
    LOGICAL = 'logical'
    OVN_MAPPING = 'ovn-mapping'
    CUDN = 'cudn'
    ATTACHMENT = 'attachment'
    OTHER = 'other'


@dataclass(frozen=True)
class IPv4Address:
    ip: str
    prefix_length: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping) -> Optional['IPv4Address']:
        ip = _text(data.get('ip'))
        if ip is None:
            return None
        prefix = data.get('prefix-length', data.get('prefix_length'))
        try:
            prefix = int(prefix) if prefix is not None else None
        except (TypeError, ValueError):
            prefix = None
        return cls(ip=ip, prefix_length=prefix)

    def __str__(self) -> str:
        if self.prefix_length is None:
            return self.ip
        return f"{self.ip}/{self.prefix_length}"


@dataclass(frozen=True)
class InterfaceRecord:
    """One entry of ``status.currentState.interfaces`` in a NodeNetworkState"""
    name: str
    type: str = 'unknown'
    state: str = 'unknown'
    controller: Optional[str] = None
    master: Optional[str] = None
    patch: bool = False
    vlan_base_iface: Optional[str] = None
    mac_vlan_base_iface: Optional[str] = None
    mac_address: Optional[str] = None
    mtu: Optional[int] = None
    ipv4_addresses: Tuple[IPv4Address, ...] = ()
    raw: Dict[str, Any] = field(default_factory=dict, hash=False, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping) -> 'InterfaceRecord':
        name = _text(data.get('name'))
        if name is None:
            raise ValueError('interface record has no name')

        patch = data.get('patch')
        mtu = data.get('mtu')
        try:
            mtu = int(mtu) if mtu is not None else None
        except (TypeError, ValueError):
            mtu = None

        addresses = []
        for entry in _mapping(data.get('ipv4')).get('address') or []:
            if isinstance(entry, Mapping):
                address = IPv4Address.from_dict(entry)
                if address is not None:
                    addresses.append(address)

        return cls(
            name=name,
            type=_text(data.get('type')) or 'unknown',
            state=(_text(data.get('state')) or 'unknown').lower(),
            controller=_text(data.get('controller')),
            master=_text(data.get('master')),
            patch=patch is not None and patch is not False,
            vlan_base_iface=_text(_mapping(data.get('vlan')).get('base-iface')),
            mac_vlan_base_iface=_text(_mapping(data.get('mac-vlan')).get('base-iface')),
            mac_address=_text(data.get('mac-address', data.get('mac_address'))),
            mtu=mtu,
            ipv4_addresses=tuple(addresses),
            raw=dict(data),
        )

    @property
    def container(self) -> Optional[str]:
        """Name of the bond or bridge this interface is attached to"""
        return self.controller or self.master

    @property
    def base_iface(self) -> Optional[str]:
        """Name of the interface a VLAN or MAC-VLAN is derived from"""
        return self.vlan_base_iface or self.mac_vlan_base_iface


@dataclass(frozen=True)
class BridgeMapping:
    """One entry of ``status.currentState.ovn.bridge-mappings``"""
    localnet: str
    bridge: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping) -> 'BridgeMapping':
        localnet = _text(data.get('localnet'))
        if localnet is None:
            raise ValueError('bridge mapping has no localnet')
        return cls(localnet=localnet, bridge=_text(data.get('bridge')))


@dataclass(frozen=True)
class Condition:
    type: str = ''
    status: str = ''
    message: str = ''

    @classmethod
    def from_dict(cls, data: Mapping) -> 'Condition':
        return cls(
            type=str(data.get('type') or ''),
            status=str(data.get('status') or ''),
            message=str(data.get('message') or ''),
        )


@dataclass(frozen=True)
class NetworkDefinition:
    """A ClusterUserDefinedNetwork (CUDN)"""
    name: str
    physical_network_name: Optional[str] = None
    topology: Optional[str] = None
    conditions: Tuple[Condition, ...] = ()
    raw: Dict[str, Any] = field(default_factory=dict, hash=False, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping) -> 'NetworkDefinition':
        name = _text(_mapping(data.get('metadata')).get('name'))
        if name is None:
            raise ValueError('network definition has no metadata.name')

        network = _mapping(_mapping(data.get('spec')).get('network'))
        localnet = _mapping(network.get('localNet')) or _mapping(network.get('localnet'))

        conditions = tuple(
            Condition.from_dict(c)
            for c in _mapping(data.get('status')).get('conditions') or []
            if isinstance(c, Mapping)
        )

        return cls(
            name=name,
            physical_network_name=_text(localnet.get('physicalNetworkName')),
            topology=_text(network.get('topology')),
            conditions=conditions,
            raw=dict(data),
        )

    def network_created(self) -> Optional[Condition]:
        """Return the NetworkCreated=True condition, if any"""
        for condition in self.conditions:
            if condition.type == NETWORK_CREATED and condition.status == 'True':
                return condition
        return None

    def attached_namespaces(self) -> Tuple[str, ...]:
        """Namespaces using this network, sorted, parsed from the NetworkCreated message"""
        condition = self.network_created()
        if condition is None or not condition.message:
            return ()

        match = _NAMESPACE_LIST.search(condition.message)
        if not match or not match.group(1):
            return ()

        names = (ns.strip() for ns in match.group(1).split(','))
        return tuple(sorted(ns for ns in names if ns))


@dataclass(frozen=True)
class GraphNode:
    id: str
    role: Role
    label: str
    origin: Any = field(default=None, compare=False, hash=False, repr=False)

    @property
    def namespaces(self) -> Tuple[str, ...]:
        if self.role == Role.ATTACHMENT and isinstance(self.origin, tuple):
            return self.origin
        return ()


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    emphasized: bool = False

    @property
    def id(self) -> str:
        return edge_id(self.source, self.target)


def edge_id(source: str, target: str) -> str:
    return f"{source}-{target}"


@dataclass(frozen=True)
class Position:
    """Top-left anchored position of a node box"""
    x: float
    y: float


@dataclass(frozen=True)
class Layout:
    positions: Dict[str, Position] = field(default_factory=dict, hash=False)
    width: float = 0.0
    height: float = 0.0

    def position(self, node_id: str) -> Optional[Position]:
        return self.positions.get(node_id)
