from __future__ import annotations

import pytest
import pytest_asyncio

from relay.core.dispatcher import Dispatcher
from relay.core.distributor import Distributor
from relay.core.proto import decode_reply, encode_request
from relay.core.registry import EntityRegistry
from relay.core.sessions import SessionManager

# Short enough that timeout tests finish quickly, long enough for a few requests in between.
TEST_TIMEOUT_SECS = 0.2


@pytest.fixture
def registry():
    return EntityRegistry()


@pytest.fixture
def distributor(registry):
    return Distributor(registry)


@pytest_asyncio.fixture
async def sessions(registry, distributor):
    manager = SessionManager(registry, distributor, timeout_secs=TEST_TIMEOUT_SECS)
    yield manager
    manager.stop_all()


@pytest.fixture
def dispatcher(registry, sessions, distributor):
    return Dispatcher(registry, sessions, distributor)


@pytest.fixture
def call(dispatcher):
    """Send one request through the dispatcher and return (result, fields)."""

    async def _call(token, code, *args):
        raw = await dispatcher.dispatch_raw(encode_request(token, code, *args))
        return decode_reply(raw)

    return _call
