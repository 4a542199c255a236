"""Stake Ledger: time-weighted staking accounting."""

__version__ = "0.1.0"
