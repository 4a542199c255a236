"""Integration tests for the command line interface."""
import sys
import json
import pytest
from unittest.mock import patch, MagicMock
from click.testing import CliRunner
from loguru import logger
from stakeledger.core.store import StateStore
from stakeledger.main import cli, parse_amount

START = 1_700_000_000
DAY = 24 * 60 * 60


@pytest.fixture(autouse=True)
def restore_logger():
    """The CLI rebinds loguru to the runner's stderr; put it back afterwards."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, tmp_path):
    """Run the CLI against a temporary data directory at a fixed time."""
    def _invoke(*args, now=START):
        with patch('stakeledger.core.service.system_clock', return_value=now):
            return runner.invoke(cli, ['--data-dir', str(tmp_path), *args])
    return _invoke


def test_parse_amount():
    assert parse_amount("1000") == 1000
    assert parse_amount("1.5N") == 15 * 10**23
    assert parse_amount("2n") == 2 * 10**24


def test_parse_amount_invalid():
    import click
    with pytest.raises(click.BadParameter):
        parse_amount("lots")
    with pytest.raises(click.BadParameter):
        parse_amount("0.0000000000000000000000001N")


def test_init_creates_state(invoke, tmp_path):
    result = invoke('init', 'owner.testnet', 'treasury.testnet', '--opening-balance', '1000000',
                    '--lockup-months', '3')
    assert result.exit_code == 0, result.output

    state = StateStore(tmp_path).load()
    assert state.owner_id == "owner.testnet"
    assert state.pool.reward_pool == 1_000_000
    config = json.loads((tmp_path / "config.json").read_text())
    assert config["default_lockup_months"] == 3

    again = invoke('init', 'owner.testnet', 'treasury.testnet')
    assert again.exit_code == 1


def test_full_staking_flow(invoke, tmp_path):
    """Test stake, claim and unstake through the CLI."""
    assert invoke('init', 'owner.testnet', 'treasury.testnet', '--opening-balance', '1000000').exit_code == 0
    assert invoke('stake', 'x.testnet', '300000').exit_code == 0
    assert invoke('stake', 'y.testnet', '700000', '--memo', 'long term').exit_code == 0

    result = invoke('pool', 'points')
    assert result.output.strip() == "1000000"
    assert invoke('pool', 'staked').output.startswith("1000000 ")

    result = invoke('preview', 'x.testnet')
    assert result.output.strip() == "0"

    # Still locked
    assert invoke('claim', 'x.testnet', now=START + DAY).exit_code == 1

    later = START + 31 * DAY
    result = invoke('preview', 'x.testnet', now=later)
    assert result.output.strip() == "300000"

    assert invoke('claim', 'x.testnet', now=later).exit_code == 0
    assert invoke('claim', 'x.testnet', now=later).exit_code == 1

    result = invoke('pool', 'balance')
    assert result.output.startswith("700000 ")

    result = invoke('entry', 'x.testnet')
    entry = json.loads(result.output)
    assert entry["claimed"] is True
    assert entry["weight"] == "1"

    assert invoke('unstake', 'x.testnet', now=later).exit_code == 0
    assert invoke('entry', 'x.testnet').output.strip() == "null"
    assert invoke('pool', 'staked').output.startswith("700000 ")
    assert invoke('check').exit_code == 0

    state = StateStore(tmp_path).load()
    assert list(state.entries) == ["y.testnet"]
    assert state.entries["y.testnet"].memo == "long term"


def test_fund_requires_owner(invoke):
    invoke('init', 'owner.testnet', 'treasury.testnet')
    assert invoke('fund', 'mallory.testnet', '10').exit_code == 1
    assert invoke('fund', 'owner.testnet', '2N').exit_code == 0
    assert invoke('pool', 'balance').output.startswith(f"{2 * 10**24} (2 NEAR)")


def test_stake_rejects_zero(invoke):
    invoke('init', 'owner.testnet', 'treasury.testnet')
    assert invoke('stake', 'x.testnet', '0').exit_code == 1
    assert invoke('entry', 'x.testnet').output.strip() == "null"


def test_commands_before_init(invoke):
    assert invoke('stake', 'x.testnet', '10').exit_code == 1
    assert invoke('pool', 'balance').exit_code == 1


def test_near_gateway_funding(invoke):
    """Test funding through the NEAR CLI gateway."""
    invoke('init', 'owner.testnet', 'treasury.testnet')

    mock_result = MagicMock()
    mock_result.returncode = 0
    mock_result.stdout = "Transaction Id 4kPqZ9\n"
    mock_result.stderr = ""
    with patch('subprocess.run', return_value=mock_result) as mock_run:
        result = invoke('--gateway', 'near', 'fund', 'owner.testnet', '1N')
        assert result.exit_code == 0, result.output
        cmd = mock_run.call_args[0][0]
        assert cmd == ['near', 'send', 'treasury.testnet', 'stake-ledger.testnet', '1',
                       '--networkId', 'testnet']

    mock_result.returncode = 1
    mock_result.stderr = "Not enough balance"
    with patch('subprocess.run', return_value=mock_result):
        assert invoke('--gateway', 'near', 'fund', 'owner.testnet', '1N').exit_code == 1

    assert invoke('pool', 'balance').output.startswith(f"{10**24} ")


def test_lock_months_must_be_positive(invoke, tmp_path):
    result = invoke('init', 'owner.testnet', 'treasury.testnet', '--lockup-months', '0')
    assert result.exit_code == 2
    assert not (tmp_path / "config.json").exists()

    invoke('init', 'owner.testnet', 'treasury.testnet')
    assert invoke('stake', 'x.testnet', '10', '--months', '0').exit_code == 2
    assert invoke('entry', 'x.testnet').output.strip() == "null"


def test_corrupt_state_file(invoke, tmp_path):
    """Test an unreadable state file is reported as an error."""
    (tmp_path / "state.json").write_text("{not json")
    result = invoke('pool', 'balance')
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
