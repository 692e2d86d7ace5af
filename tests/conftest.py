import pytest

from tests.fakes import FakeChainClient, make_fetcher
from x1_rewards.errors import RPCError


@pytest.fixture
def rpc_down():
    return RPCError("RPC error on method getInflationReward: Node is behind")


@pytest.fixture
def client():
    return FakeChainClient(current_epoch=100)


@pytest.fixture
def fetcher(client):
    return make_fetcher(client)
