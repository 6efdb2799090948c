import pytest

from uprox.chain import Chain
from uprox.upgrades import Upgrades


@pytest.fixture
def chain():
    return Chain()


@pytest.fixture
def upgrades(chain):
    return Upgrades(chain)
