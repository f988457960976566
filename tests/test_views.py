"""Tests for read-only queries: current rewards, unallocated rewards and runway."""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from conftest import ADMIN
from lockstake.engine import INFINITE_RUNWAY, SECONDS_PER_DAY
from lockstake.engine.fixed_point import U32_MAX


class TestCurrentRewards:
    """Projected rewards never mutate state."""

    def test_unknown_user_is_zero(self, engine):
        assert engine.view_current_rewards("nobody") == 0

    def test_view_does_not_mutate(self, engine, clock):
        engine.stake("alice", 10**9)
        clock.advance(SECONDS_PER_DAY)
        acc_before = engine.accumulator
        pos_before = engine.position("alice")
        num_events = len(engine.events)

        engine.view_current_rewards("alice")
        engine.view_reward_breakdown("alice")
        engine.view_unallocated_rewards()
        engine.view_reward_runway()

        assert engine.accumulator == acc_before
        assert engine.position("alice") == pos_before
        assert len(engine.events) == num_events

    def test_breakdown_splits_captured(self, engine, clock):
        """After a top-up the earlier reward shows as captured."""
        engine.stake("alice", 10**9)
        clock.advance(SECONDS_PER_DAY)
        engine.stake("alice", 10**9)
        clock.advance(SECONDS_PER_DAY)
        breakdown = engine.view_reward_breakdown("alice")
        assert breakdown.captured == 219_110
        assert breakdown.uncaptured == 438_220
        assert breakdown.total == engine.view_current_rewards("alice")


class TestUnallocatedRewards:
    """Funded minus promised, projected to now."""

    def test_funding_only(self, engine):
        assert engine.view_unallocated_rewards() == 1_000_000

    def test_projected_consumption(self, engine, clock):
        engine.stake("alice", 10**12)
        clock.advance(100)
        assert engine.view_unallocated_rewards() == 1_000_000 - 253_600

    def test_can_go_negative(self, bare_engine, clock):
        bare_engine.stake("alice", 10**12)
        clock.advance(10)
        assert bare_engine.view_unallocated_rewards() == -25_360


class TestRewardRunway:
    """Seconds of funding left at the current consumption rate."""

    def test_no_stakers_is_infinite(self, engine):
        assert engine.view_reward_runway() == INFINITE_RUNWAY

    def test_consumption_below_one_token_is_infinite(self, engine):
        """1,000,000 staked at 8% consumes less than a token per second."""
        engine.stake("alice", 1_000_000)
        assert engine.view_reward_runway() == INFINITE_RUNWAY

    def test_finite_runway(self, bare_engine, clock):
        bare_engine.add_rewards(ADMIN, 2_536_000)
        bare_engine.stake("alice", 10**12)
        assert bare_engine.view_reward_runway() == 1_000
        clock.advance(400)
        assert bare_engine.view_reward_runway() == 600

    def test_under_funded_is_zero(self, bare_engine, clock):
        bare_engine.stake("alice", 10**12)
        clock.advance(10)
        assert bare_engine.view_reward_runway() == 0

    def test_saturates_above_u32(self, bare_engine):
        """Runways longer than the u32 range report as infinite."""
        bare_engine.add_rewards(ADMIN, 2536 * (U32_MAX + 1))
        bare_engine.stake("alice", 10**12)
        assert bare_engine.view_reward_runway() == INFINITE_RUNWAY

    def test_just_inside_u32(self, bare_engine):
        bare_engine.add_rewards(ADMIN, 2536 * U32_MAX)
        bare_engine.stake("alice", 10**12)
        assert bare_engine.view_reward_runway() == U32_MAX


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
