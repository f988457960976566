"""Staking ledger with time-proportional rewards and a delayed withdrawal escrow."""

__version__ = "1.0.0"
