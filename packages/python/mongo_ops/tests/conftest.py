import pytest

from fakes import URI, FakeConnector
from mongo_ops import ConnectionContext, ConnectionRegistry, MongoOpsSettings


@pytest.fixture()
def connector():
    return FakeConnector()


@pytest.fixture()
def registry(connector):
    return ConnectionRegistry(connector, settings=MongoOpsSettings(pool_size=5))


@pytest.fixture()
def context(registry):
    return ConnectionContext(URI, registry)


@pytest.fixture()
def orders(connector):
    return connector.collection(URI, "orders")
