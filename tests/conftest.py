"""Shared fixtures: a fresh hub with a capturing client per test."""

import pytest

from tracelink import runtime_config
from tracelink.client import Client
from tracelink.config import ClientOptions
from tracelink.context.hub import Hub, get_main_hub
from tracelink.integrations import _reset_installed_once

TEST_DSN = "https://public@dsn.ingest.example.com/1337"


@pytest.fixture(autouse=True)
def _reset_state():
    runtime_config.reset()
    _reset_installed_once()
    main_hub = get_main_hub()
    main_hub.bind_client(None)
    main_hub.get_scope().clear()
    yield
    runtime_config.reset()
    main_hub.bind_client(None)
    main_hub.get_scope().clear()


@pytest.fixture
def sent():
    """Records handed to the transport."""
    return []


@pytest.fixture
def client(sent):
    options = ClientOptions(
        dsn=TEST_DSN,
        environment="prod",
        release="1.0",
        traces_sample_rate=1.0,
    )
    return Client(options, transport=sent.append)


@pytest.fixture
def hub(client):
    """A hub bound to ``client`` and current for the duration of the test."""
    with Hub(client) as current:
        yield current
