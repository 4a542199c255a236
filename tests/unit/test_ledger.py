"""Unit tests for the stake ledger."""
import pytest
from fractions import Fraction
from stakeledger.core.errors import InvalidAmountError
from stakeledger.core.ledger import StakeLedger
from stakeledger.core.stake import StakingEntry


def make_entry(amount, weight=Fraction(1), claimed=False):
    return StakingEntry(
        amount=amount,
        start_time=0,
        lockup_duration=100,
        lockup_months=1,
        weight=weight,
        claimed=claimed,
    )


@pytest.fixture
def ledger():
    return StakeLedger({})


def test_get_missing(ledger):
    """Test lookup of an unknown participant."""
    assert ledger.get("nobody.testnet") is None
    assert "nobody.testnet" not in ledger
    assert len(ledger) == 0


def test_upsert_and_get(ledger):
    """Test inserting and replacing entries."""
    ledger.upsert("alice.testnet", make_entry(10))
    assert ledger.get("alice.testnet").amount == 10

    ledger.upsert("alice.testnet", make_entry(25))
    assert ledger.get("alice.testnet").amount == 25
    assert len(ledger) == 1


def test_upsert_rejects_empty_entry(ledger):
    """Test that a zero-amount entry is never stored."""
    empty = make_entry(1).model_copy(update={"amount": 0})
    with pytest.raises(InvalidAmountError):
        ledger.upsert("alice.testnet", empty)
    assert "alice.testnet" not in ledger


def test_remove(ledger):
    """Test removing entries."""
    ledger.upsert("alice.testnet", make_entry(10))
    removed = ledger.remove("alice.testnet")
    assert removed.amount == 10
    assert ledger.get("alice.testnet") is None
    assert ledger.remove("alice.testnet") is None


def test_shares_backing_mapping():
    """Test that the ledger writes through to the state it wraps."""
    entries = {}
    StakeLedger(entries).upsert("alice.testnet", make_entry(5))
    assert entries["alice.testnet"].amount == 5


def test_recompute_points(ledger):
    """Test recomputed totals over all and claimed entries."""
    ledger.upsert("alice.testnet", make_entry(100))
    ledger.upsert("bob.testnet", make_entry(100, weight=Fraction(5, 2), claimed=True))
    ledger.upsert("carol.testnet", make_entry(3, weight=Fraction(3, 2)))

    assert ledger.recompute_points() == Fraction(709, 2)
    assert ledger.recompute_claimed_points() == 250
    assert sorted(account for account, _ in ledger.items()) == [
        "alice.testnet", "bob.testnet", "carol.testnet"
    ]
