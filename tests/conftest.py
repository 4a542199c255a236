"""Test configuration and fixtures for Stake Ledger."""
import os
import pytest
from stakeledger.core.config import StakingConfig
from stakeledger.core.service import StakingService
from stakeledger.core.transfer import InMemoryTransferGateway

OWNER = "owner.testnet"
TREASURY = "treasury.testnet"
START = 1_700_000_000


class FakeClock:
    """Manually advanced clock in whole seconds."""

    def __init__(self, now: int = START):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return StakingConfig()


@pytest.fixture
def month(config):
    """Length of one lock month in seconds."""
    return config.seconds_per_month


@pytest.fixture
def gateway():
    return InMemoryTransferGateway()


@pytest.fixture
def service(gateway, config, clock):
    """Initialized service with a 1,000,000 opening pool."""
    svc = StakingService(gateway=gateway, config=config, clock=clock)
    svc.initialize(OWNER, TREASURY, opening_balance=1_000_000)
    return svc


@pytest.fixture
def env_setup(tmp_path):
    """Set up environment variables for testing."""
    os.environ["STAKE_LEDGER_HOME"] = str(tmp_path)
    os.environ["STAKE_LEDGER_LOG_LEVEL"] = "DEBUG"
    yield tmp_path
    del os.environ["STAKE_LEDGER_HOME"]
    del os.environ["STAKE_LEDGER_LOG_LEVEL"]
