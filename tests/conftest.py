"""
Pytest configuration and shared fixtures.

Provides:
- Fake host fact providers
- A WhoamiServer wired to deterministic byte sources
- A Flask test client
"""

import io
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app import WhoamiServer, create_app
from models import HostnameInfo, NetAddr, NetInterface, VersionInfo, VirtualMemoryStat
from probes.memory_stress import MemoryStressAgent

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

TEST_VERSION = VersionInfo(
    major=1,
    minor=2,
    patch=3,
    commit='feedcoffee',
    build_date=datetime(1970, 1, 1, tzinfo=timezone.utc),
)

TEST_VIRTUAL_MEMORY = VirtualMemoryStat(total=42, available=42, used=42, used_percent=42.0)

TEST_INTERFACES = [
    NetInterface(index=42, mtu=1234, name='test', addresses=[NetAddr(network='ip+net', value='10.0.0.1/24')]),
]

TEST_HOSTNAME = HostnameInfo(hostname='foobar')


def parse_timestamp(text):
    return datetime.fromisoformat(text.replace('Z', '+00:00'))


@pytest.fixture
def memory_stress():
    """Stress agent whose sessions read from a large in-memory buffer"""
    agent = MemoryStressAgent(byte_source_factory=lambda: io.BytesIO(b'\x2a' * 4096))
    yield agent
    agent.shutdown(timeout=2)


@pytest.fixture
def server(memory_stress):
    server = WhoamiServer(TEST_VERSION, memory_stress=memory_stress)
    server.virtual_memory_provider = lambda: TEST_VIRTUAL_MEMORY
    server.interfaces_provider = lambda: TEST_INTERFACES
    server.hostname_provider = lambda: TEST_HOSTNAME
    return server


@pytest.fixture
def client(server):
    app = create_app(server)
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client
