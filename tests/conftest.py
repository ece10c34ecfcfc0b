import pytest

from fakes import FakeSignerServer
from signer_link.engine import ConnectionEngine


@pytest.fixture
def make_engine():
    """Build engines that are closed when the test finishes."""
    engines = []

    def _make(transport, **kwargs):
        engine = ConnectionEngine(transport, **kwargs)
        engines.append(engine)
        return engine

    yield _make

    for engine in engines:
        engine.close()


@pytest.fixture
def signer_server():
    """Start fake signer servers that are shut down after the test."""
    servers = []

    def _start(handler):
        server = FakeSignerServer(handler)
        servers.append(server)
        return server

    yield _start

    for server in servers:
        server.close()
