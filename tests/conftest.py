"""Shared fixtures for the staking ledger tests."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from lockstake.engine import Account, InMemoryTokenLedger, ManualClock, StakingEngine

ADMIN = "admin"
EIGHT_PERCENT = 80_000_000_000  # per-second rate 2536
T0 = 1_700_000_000


@pytest.fixture
def clock():
    return ManualClock(start=T0)


@pytest.fixture
def ledger():
    """Token ledger with a funded administrator and three funded users."""
    book = InMemoryTokenLedger()
    book.mint(Account.wallet(ADMIN), 10**15)
    for user in ("alice", "bob", "carol"):
        book.mint(Account.wallet(user), 10**13)
    return book


@pytest.fixture
def engine(ledger, clock):
    """Engine at 8% yearly with a 7 day delay and 1,000,000 reward tokens funded."""
    eng = StakingEngine.initialize(ADMIN, ledger.asset_id, 7, EIGHT_PERCENT, ledger, clock)
    eng.add_rewards(ADMIN, 1_000_000)
    return eng


@pytest.fixture
def bare_engine(ledger, clock):
    """Engine at 8% yearly with a 7 day delay and an empty treasury."""
    return StakingEngine.initialize(ADMIN, ledger.asset_id, 7, EIGHT_PERCENT, ledger, clock)
