"""
Load NodeNetworkState and ClusterUserDefinedNetwork resources

Accepts the YAML (or JSON) that ``oc get nns <node> -o yaml`` and
``oc get clusteruserdefinednetworks -o yaml`` produce.
"""

import logging
from collections.abc import Mapping
from typing import Any, List, Optional, Tuple

import yaml

from .exceptions import ResourceLoadError
from .models import BridgeMapping, InterfaceRecord, NetworkDefinition
from .snapshot import TopologyInputs

logger = logging.getLogger(__name__)


def load_yaml_documents(path: str) -> List[Any]:
    """Read every non-empty YAML document from path"""
    try:
        with open(path, 'r') as f:
            return [doc for doc in yaml.safe_load_all(f) if doc is not None]
    except OSError as e:
        raise ResourceLoadError(path, e.strerror or str(e))
    except yaml.YAMLError as e:
        raise ResourceLoadError(path, f"invalid YAML: {e}")


def _items(doc: Any) -> List[Any]:
    """Flatten a single resource, a List resource or a plain list into a list"""
    if isinstance(doc, list):
        return doc
    if isinstance(doc, Mapping):
        if isinstance(doc.get('items'), list):
            return doc['items']
        return [doc]
    return []


def parse_node_network_state(doc: Any) -> Tuple[List[InterfaceRecord], List[BridgeMapping]]:
    """Extract interfaces and OVN bridge mappings from a NodeNetworkState"""
    if not isinstance(doc, Mapping):
        return [], []

    status = doc.get('status')
    current = status.get('currentState') if isinstance(status, Mapping) else None
    if not isinstance(current, Mapping):
        return [], []

    interfaces = []
    for entry in current.get('interfaces') or []:
        try:
            interfaces.append(InterfaceRecord.from_dict(entry))
        except (ValueError, AttributeError) as e:
            logger.warning(f"Skipping malformed interface entry {entry!r}: {e}")

    ovn = current.get('ovn') or {}
    mappings = []
    for entry in (ovn.get('bridge-mappings') if isinstance(ovn, Mapping) else None) or []:
        try:
            mappings.append(BridgeMapping.from_dict(entry))
        except (ValueError, AttributeError) as e:
            logger.warning(f"Skipping malformed bridge mapping {entry!r}: {e}")

    return interfaces, mappings


def parse_cudns(doc: Any) -> List[NetworkDefinition]:
    """Extract ClusterUserDefinedNetworks from a single resource, a List or a plain list"""
    cudns = []
    for entry in _items(doc):
        if not isinstance(entry, Mapping):
            logger.warning(f"Skipping non-mapping network definition {entry!r}")
            continue
        try:
            cudns.append(NetworkDefinition.from_dict(entry))
        except ValueError as e:
            logger.warning(f"Skipping malformed network definition: {e}")
    return cudns


def load_resources(nns_path: str, cudn_path: Optional[str] = None) -> TopologyInputs:
    """Load the three input collections of the topology graph from files"""
    interfaces: List[InterfaceRecord] = []
    mappings: List[BridgeMapping] = []
    for doc in load_yaml_documents(nns_path):
        for item in _items(doc):
            found_interfaces, found_mappings = parse_node_network_state(item)
            interfaces.extend(found_interfaces)
            mappings.extend(found_mappings)

    cudns: List[NetworkDefinition] = []
    if cudn_path:
        for doc in load_yaml_documents(cudn_path):
            cudns.extend(parse_cudns(doc))

    logger.debug(f"Loaded {len(interfaces)} interfaces, {len(mappings)} bridge mappings "
                 f"and {len(cudns)} network definitions")
    return TopologyInputs.of(interfaces, mappings, cudns)
