"""Tests for the /api HTTP routes"""

import time

import pytest

from conftest import TEST_HOSTNAME, parse_timestamp
from models import HealthStatus, InstanceStatus


def raise_error():
    raise RuntimeError("test error")


def test_version(client):
    response = client.get('/api/version')
    assert response.status_code == 200
    assert response.get_json() == {
        'major': 1,
        'minor': 2,
        'patch': 3,
        'commit': 'feedcoffee',
        'buildDate': '1970-01-01T00:00:00Z',
    }


def test_version_head(client):
    response = client.head('/api/version')
    assert response.status_code == 200
    assert response.data == b''


def test_cors_header(client):
    response = client.get('/api/version', headers={'Origin': 'http://example.com'})
    assert response.headers.get('Access-Control-Allow-Origin') in ('*', 'http://example.com')


@pytest.mark.parametrize('health, code', [
    (HealthStatus.UP, 200),
    (HealthStatus.DOWN, 503),
])
def test_get_health(client, server, health, code):
    server.instance_status = InstanceStatus(health=health)
    response = client.get('/api/health')
    assert response.status_code == code
    assert response.get_json() == {'status': health.value}


@pytest.mark.parametrize('kwargs', [
    {'data': {'status': 'down'}},
    {'json': {'status': 'DOWN'}},
    {'query_string': {'status': 'Down'}},
])
def test_put_health(client, server, kwargs):
    response = client.put('/api/health', **kwargs)
    assert response.status_code == 200
    assert response.get_json() == {'status': 'down'}
    assert server.instance_status.health is HealthStatus.DOWN
    assert client.get('/api/health').status_code == 503

    response = client.put('/api/health', data={'status': 'up'})
    assert response.get_json() == {'status': 'up'}
    assert client.get('/api/health').status_code == 200


@pytest.mark.parametrize('data', [{'status': 'sideways'}, {}])
def test_put_health_invalid(client, server, data):
    response = client.put('/api/health', data=data)
    assert response.status_code == 400
    assert response.get_json() == {'error': 'invalid status'}
    assert server.instance_status.health is HealthStatus.UP


def test_memory(client):
    response = client.get('/api/memory')
    assert response.status_code == 200
    assert response.get_json() == {'total': 42, 'available': 42, 'used': 42, 'usedPercent': 42.0}


def test_memory_failure(client, server):
    server.virtual_memory_provider = raise_error
    response = client.get('/api/memory')
    assert response.status_code == 500
    assert response.get_json() == {'error': 'test error'}


def test_interfaces(client):
    response = client.get('/api/interfaces')
    assert response.status_code == 200
    assert response.get_json() == [{
        'index': 42,
        'mtu': 1234,
        'name': 'test',
        'addresses': [{'network': 'ip+net', 'value': '10.0.0.1/24'}],
    }]


def test_interfaces_failure(client, server):
    server.interfaces_provider = raise_error
    assert client.get('/api/interfaces').status_code == 500


def test_hostname(client):
    response = client.get('/api/hostname')
    assert response.status_code == 200
    assert response.get_json() == {'hostname': TEST_HOSTNAME.hostname}


def test_hostname_failure(client, server):
    server.hostname_provider = raise_error
    response = client.get('/api/hostname')
    assert response.status_code == 500
    assert response.get_json() == {'error': 'test error'}


def test_echo_request(client):
    response = client.post(
        '/api/request?color=blue',
        data={'shape': 'circle'},
        headers={'x-test': 'one'},
    )
    assert response.status_code == 200
    body = response.get_json()
    assert body['method'] == 'POST'
    assert body['path'] == '/api/request'
    assert body['proto'].startswith('HTTP/')
    assert body['protoMajor'] == 1
    assert body['host'] == 'localhost'
    assert body['headers']['X-Test'] == ['one']
    assert 'Host' not in body['headers']
    assert body['form'] == {'shape': ['circle'], 'color': ['blue']}
    assert body['remoteAddress'].startswith('127.0.0.1')


@pytest.mark.parametrize('method', ['GET', 'PUT', 'DELETE', 'PATCH', 'CONNECT', 'TRACE'])
def test_echo_request_methods(client, method):
    response = client.open('/api/request', method=method)
    assert response.status_code == 200
    body = response.get_json()
    assert body['method'] == method
    assert 'form' not in body


# -------------------------------
# Memory stress session
# -------------------------------

def test_stress_session_lifecycle(client):
    response = client.get('/api/memory/stresssession')
    assert response.status_code == 400
    assert response.get_json() == {'error': 'memory stress is not currently running'}

    response = client.post('/api/memory/stresssession', data={'interval': '25ms', 'allocSize': '1'})
    assert response.status_code == 200
    started = response.get_json()
    assert 'finishedAt' not in started
    assert started['bytesAllocated'] <= 1

    response = client.post('/api/memory/stresssession', data={'interval': '25ms', 'allocSize': '1'})
    assert response.status_code == 400
    assert response.get_json() == {'error': 'memory stress is already running'}

    time.sleep(0.1)
    response = client.get('/api/memory/stresssession')
    assert response.status_code == 200
    polled = response.get_json()
    assert polled['startedAt'] == started['startedAt']
    assert 'finishedAt' not in polled
    assert polled['bytesAllocated'] >= 1

    response = client.delete('/api/memory/stresssession')
    assert response.status_code == 200
    cancelled = response.get_json()
    assert parse_timestamp(cancelled['finishedAt']) >= parse_timestamp(cancelled['startedAt'])
    assert cancelled['bytesAllocated'] >= polled['bytesAllocated']

    assert client.get('/api/memory/stresssession').status_code == 400
    assert client.delete('/api/memory/stresssession').status_code == 400


def test_stress_session_json_body(client, memory_stress):
    response = client.post('/api/memory/stresssession', json={'interval': 0.025, 'allocationSize': 2})
    assert response.status_code == 200
    stresser = memory_stress._session.stresser
    assert stresser.interval == 0.025
    assert stresser.allocation_size == 2


def test_stress_session_defaults(client, memory_stress):
    response = client.post('/api/memory/stresssession', data={'interval': '0', 'allocSize': '0'})
    assert response.status_code == 200
    stresser = memory_stress._session.stresser
    assert stresser.interval == 1.0
    assert stresser.allocation_size == 32 * 1024 * 1024


@pytest.mark.parametrize('data, message', [
    ({'interval': '-1s'}, 'negative interval'),
    ({'allocSize': '-5'}, 'negative allocation size'),
    ({'interval': 'soon'}, 'invalid duration "soon"'),
    ({'allocSize': 'lots'}, 'invalid allocation size "lots"'),
    ({'interval': '9999999999h'}, 'invalid duration "9999999999h"'),
])
def test_stress_session_bad_parameters(client, data, message):
    response = client.post('/api/memory/stresssession', data=data)
    assert response.status_code == 400
    assert response.get_json() == {'error': message}
    assert client.get('/api/memory/stresssession').status_code == 400


@pytest.mark.parametrize('literal, shown', [('NaN', 'nan'), ('Infinity', 'inf'), ('-Infinity', '-inf')])
def test_stress_session_rejects_non_finite_json_interval(client, literal, shown):
    response = client.post(
        '/api/memory/stresssession',
        data=f'{{"interval": {literal}, "allocationSize": 1}}',
        content_type='application/json',
    )
    assert response.status_code == 400
    assert response.get_json() == {'error': f'invalid duration "{shown}"'}
    assert client.get('/api/memory/stresssession').status_code == 400


def test_stress_session_head(client):
    assert client.head('/api/memory/stresssession').status_code == 400
    client.post('/api/memory/stresssession', data={'interval': '1s', 'allocSize': '1'})
    assert client.head('/api/memory/stresssession').status_code == 200


def test_server_requires_version():
    from app import WhoamiServer
    with pytest.raises(ValueError):
        WhoamiServer(None)


def test_find_available_port_skips_bound_port():
    import socket
    from app import find_available_port, is_port_in_use
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        taken = s.getsockname()[1]
        assert is_port_in_use(taken)
        assert find_available_port(taken, taken + 1) is None
