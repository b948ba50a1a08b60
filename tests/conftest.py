"""Test configuration and fixtures for topology tests."""

import os

import pytest
import yaml
from prometheus_client import REGISTRY

from topology.models import BridgeMapping, InterfaceRecord, NetworkDefinition


@pytest.fixture(autouse=True)
def clear_prometheus_registry():
    """Clear Prometheus registry before each test."""
    collectors = list(REGISTRY._collector_to_names.keys())
    for collector in collectors:
        try:
            REGISTRY.unregister(collector)
        except KeyError:
            pass  # Collector was already unregistered


def make_interface(name, type='ethernet', **fields):
    """Build an InterfaceRecord from NMState-style keyword fields."""
    data = {'name': name, 'type': type, 'state': fields.pop('state', 'up')}
    data.update({key.replace('_', '-'): value for key, value in fields.items()})
    return InterfaceRecord.from_dict(data)


def make_cudn(name, physical_network=None, namespaces_message=None, status='True', topology='Localnet'):
    """Build a NetworkDefinition with an optional NetworkCreated condition."""
    network = {'topology': topology}
    if physical_network:
        network['localNet'] = {'physicalNetworkName': physical_network}
    data = {'metadata': {'name': name}, 'spec': {'network': network}}
    if namespaces_message is not None:
        data['status'] = {'conditions': [
            {'type': 'NetworkCreated', 'status': status, 'message': namespaces_message}
        ]}
    return NetworkDefinition.from_dict(data)


@pytest.fixture
def scenario_interfaces():
    """eth0 attached to the OVS bridge br0."""
    return [
        make_interface('eth0', 'ethernet', controller='br0'),
        make_interface('br0', 'ovs-bridge'),
    ]


@pytest.fixture
def scenario_mappings():
    return [BridgeMapping(localnet='physnet1', bridge='br0')]


@pytest.fixture
def scenario_cudns():
    return [make_cudn('net-a', physical_network='physnet1',
                      namespaces_message='NAD created in namespaces: [ns-b, ns-a] done')]


@pytest.fixture
def sample_nns():
    """A NodeNetworkState resource with a bond, a VLAN, an OVS bridge and a patch port."""
    return {
        'apiVersion': 'nmstate.io/v1beta1',
        'kind': 'NodeNetworkState',
        'metadata': {'name': 'worker-0'},
        'status': {
            'currentState': {
                'interfaces': [
                    {'name': 'eno1', 'type': 'ethernet', 'state': 'up', 'controller': 'bond0',
                     'mac-address': '52:54:00:AA:00:01', 'mtu': 1500},
                    {'name': 'eno2', 'type': 'ethernet', 'state': 'up', 'controller': 'bond0'},
                    {'name': 'bond0', 'type': 'bond', 'state': 'up', 'controller': 'br-ex'},
                    {'name': 'bond0.100', 'type': 'vlan', 'state': 'up',
                     'vlan': {'base-iface': 'bond0', 'id': 100}},
                    {'name': 'br-ex', 'type': 'ovs-bridge', 'state': 'up'},
                    {'name': 'ovn-k8s-mp0', 'type': 'ovs-interface', 'state': 'up', 'controller': 'br-int',
                     'ipv4': {'enabled': True, 'address': [{'ip': '10.128.0.2', 'prefix-length': 23}]}},
                    {'name': 'br-int', 'type': 'ovs-bridge', 'state': 'down'},
                    {'name': 'patch-br-ex-to-br-int', 'type': 'ovs-interface', 'state': 'up',
                     'controller': 'br-ex', 'patch': {'peer': 'patch-br-int-to-br-ex'}},
                ],
                'ovn': {
                    'bridge-mappings': [
                        {'localnet': 'physnet', 'bridge': 'br-ex'},
                        {'localnet': 'orphan', 'bridge': 'br-missing'},
                    ]
                },
            }
        },
    }


@pytest.fixture
def sample_cudn_list():
    """A List of ClusterUserDefinedNetworks as returned by 'oc get ... -o yaml'."""
    return {
        'apiVersion': 'v1',
        'kind': 'List',
        'items': [
            {
                'metadata': {'name': 'localnet-a'},
                'spec': {'network': {'topology': 'Localnet',
                                     'localNet': {'physicalNetworkName': 'physnet'}}},
                'status': {'conditions': [
                    {'type': 'NetworkReady', 'status': 'True', 'message': '[ignored]'},
                    {'type': 'NetworkCreated', 'status': 'True',
                     'message': 'NetworkAttachmentDefinition has been created in following '
                                'namespaces: [team-b, team-a, team-d, team-c]'},
                ]},
            },
            {
                'metadata': {'name': 'layer2-b'},
                'spec': {'network': {'topology': 'Layer2'}},
            },
        ],
    }


@pytest.fixture
def resource_files(tmp_path, sample_nns, sample_cudn_list):
    """Write the sample resources to YAML files and return their paths."""
    nns_path = tmp_path / 'nns.yaml'
    cudn_path = tmp_path / 'cudns.yaml'
    nns_path.write_text(yaml.dump(sample_nns))
    cudn_path.write_text(yaml.dump(sample_cudn_list))
    return str(nns_path), str(cudn_path)


@pytest.fixture
def viewer_config_file(tmp_path, resource_files):
    """Viewer configuration pointing at the sample resource files."""
    nns_path, cudn_path = resource_files
    config = {
        'viewer': {
            'server': {'host': '127.0.0.1', 'port': 8781},
            'sources': {'node_network_state': nns_path, 'cudns': cudn_path},
            'layout': {'engine': 'layered'},
            'logging': {'level': 'DEBUG'},
        }
    }
    config_path = tmp_path / 'viewer.yaml'
    config_path.write_text(yaml.dump(config))
    return str(config_path)


@pytest.fixture
def mock_env_vars(resource_files):
    """Mock environment variables for testing."""
    nns_path, cudn_path = resource_files
    env_vars = {
        'NNSTOPO_SERVER_HOST': '127.0.0.1',
        'NNSTOPO_SERVER_PORT': '8782',
        'NNSTOPO_NNS_PATH': nns_path,
        'NNSTOPO_CUDN_PATH': cudn_path,
        'NNSTOPO_LAYOUT': 'dag',
        'NNSTOPO_LOG_LEVEL': 'INFO',
    }

    # Store original values
    original_values = {}
    for key, value in env_vars.items():
        original_values[key] = os.environ.get(key)
        os.environ[key] = value

    yield env_vars

    # Restore original values
    for key, value in original_values.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value
