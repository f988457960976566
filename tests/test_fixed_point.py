"""Tests for fixed-point arithmetic and the accrual formulas."""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from lockstake.engine.errors import MathOverflow
from lockstake.engine.fixed_point import (
    PRECISION,
    SECONDS_PER_YEAR,
    U32_MAX,
    U64_MAX,
    checked_add,
    checked_sub,
    checked_timestamp,
    days_to_seconds,
    per_second_rate_to_apr_percent,
    scaled_mul_div,
    yearly_rate_to_per_second,
)
from lockstake.engine.rewards import (
    compute_reward_increment,
    compute_total_new_reward,
    compute_uncaptured_reward,
    settle_position,
    update_accumulator,
)
from lockstake.engine.state import PositionPhase, RewardAccumulator, Settings, UserPosition


def make_settings(rate=2536, delay=7 * 86_400):
    return Settings(
        administrator="admin",
        asset_id="STAKE",
        withdrawal_delay_seconds=delay,
        reward_rate_per_second_per_token_numerator=rate,
    )


class TestConversions:
    """Rate and time conversions."""

    def test_eight_percent_per_second_rate(self):
        """8% yearly floors to 2536 per second per token."""
        assert yearly_rate_to_per_second(80_000_000_000) == 2536

    def test_tiny_rate_floors_to_zero(self):
        """Yearly numerators below one year of seconds give zero."""
        assert yearly_rate_to_per_second(SECONDS_PER_YEAR - 1) == 0

    def test_apr_display(self):
        """2536 per second is displayed as just under 8%."""
        assert per_second_rate_to_apr_percent(2536) == pytest.approx(7.9975, abs=1e-4)

    def test_days_to_seconds(self):
        assert days_to_seconds(7) == 604_800


class TestCheckedArithmetic:
    """u64/u32 bounds are enforced by raising MathOverflow."""

    def test_scaled_mul_div_floors(self):
        """Quotient is floored, not rounded."""
        assert scaled_mul_div(3, 999_999_999_999, PRECISION) == 2

    def test_scaled_mul_div_wide_intermediate(self):
        """The product may exceed u64 as long as the quotient fits."""
        assert scaled_mul_div(U64_MAX, PRECISION, PRECISION) == U64_MAX

    def test_scaled_mul_div_overflow(self):
        with pytest.raises(MathOverflow):
            scaled_mul_div(U64_MAX, 2, 1)

    def test_scaled_mul_div_zero_divisor(self):
        with pytest.raises(MathOverflow):
            scaled_mul_div(1, 1, 0)

    def test_add_overflow(self):
        with pytest.raises(MathOverflow):
            checked_add(U64_MAX, 1)

    def test_sub_underflow(self):
        with pytest.raises(MathOverflow):
            checked_sub(0, 1)

    def test_timestamp_range(self):
        assert checked_timestamp(U32_MAX) == U32_MAX
        with pytest.raises(MathOverflow):
            checked_timestamp(U32_MAX + 1)

    def test_error_code_in_message(self):
        """Errors render as 'code: message'."""
        with pytest.raises(MathOverflow) as exc_info:
            checked_sub(0, 1)
        assert str(exc_info.value).startswith("math_overflow: ")


class TestAccrualFormulas:
    """Index increment, promised reward and uncaptured reward."""

    def test_increment(self):
        assert compute_reward_increment(2536, 86_400) == 219_110_400

    def test_negative_elapsed_rejected(self):
        with pytest.raises(MathOverflow):
            compute_reward_increment(2536, -1)

    def test_total_new_reward(self):
        assert compute_total_new_reward(10**12, 2536) == 2536

    def test_fair_share_three_to_one(self):
        """A stake three times larger earns three times the reward."""
        increment = 219_110_400
        small = compute_uncaptured_reward(100_000_000, increment, 0)
        large = compute_uncaptured_reward(300_000_000, increment, 0)
        assert small == 21_911
        assert large == 65_733
        assert large == 3 * small

    def test_tiny_increment_floors_to_zero(self):
        """Both shares of a 1000-unit increment truncate to zero."""
        small = compute_uncaptured_reward(100, 1000, 0)
        large = compute_uncaptured_reward(300, 1000, 0)
        assert small == 0
        assert large == 3 * small

    def test_snapshot_ahead_of_index_rejected(self):
        with pytest.raises(MathOverflow):
            compute_uncaptured_reward(100, 5, 6)


class TestAccumulator:
    """Lazy accumulator updates."""

    def test_no_phantom_accrual_without_stake(self):
        """Idle periods only move the timestamp."""
        settings = make_settings()
        acc = RewardAccumulator(last_update_time=1000)
        assert update_accumulator(settings, acc, 1000 + 30 * 86_400) == 0
        assert acc.reward_per_token_stored_numerator == 0
        assert acc.total_reward_promised == 0
        assert acc.last_update_time == 1000 + 30 * 86_400

    def test_zero_elapsed_is_noop(self):
        settings = make_settings()
        acc = RewardAccumulator(last_update_time=1000, total_staked=10**12,
                                reward_per_token_stored_numerator=7)
        assert update_accumulator(settings, acc, 1000) == 0
        assert acc.reward_per_token_stored_numerator == 7

    def test_update_accrues(self):
        settings = make_settings()
        acc = RewardAccumulator(last_update_time=1000, total_staked=10**12)
        increment = update_accumulator(settings, acc, 1010)
        assert increment == 25_360
        assert acc.reward_per_token_stored_numerator == 25_360
        assert acc.total_reward_promised == 25_360
        assert acc.last_update_time == 1010

    def test_backwards_clock_rejected(self):
        settings = make_settings()
        acc = RewardAccumulator(last_update_time=1000)
        with pytest.raises(MathOverflow):
            update_accumulator(settings, acc, 999)

    def test_projection_matches_update(self):
        """Projected index equals the value an update produces."""
        settings = make_settings()
        acc = RewardAccumulator(last_update_time=1000, total_staked=5 * 10**9)
        projected = acc.projected_reward_per_token(settings, 4321)
        promised = acc.projected_total_reward_promised(settings, 4321)
        acc.update(settings, 4321)
        assert acc.reward_per_token_stored_numerator == projected
        assert acc.total_reward_promised == promised

    def test_unallocated_can_go_negative(self):
        settings = make_settings()
        acc = RewardAccumulator(last_update_time=0, total_staked=10**12, total_reward_provided=100)
        assert acc.unallocated_rewards(settings, 1) == 100 - 2536


class TestSettlement:
    """Settling a position against the accumulator."""

    def test_settle_is_idempotent(self):
        """A second settle at the same index captures nothing."""
        settings = make_settings()
        acc = RewardAccumulator(last_update_time=0, total_staked=10**9)
        pos = UserPosition(user="alice", stake_amount=10**9)
        acc.update(settings, 86_400)

        first = settle_position(acc, pos)
        second = settle_position(acc, pos)
        assert first == 219_110
        assert second == 0
        assert pos.captured_reward == first
        assert pos.reward_per_token_paid_numerator == acc.reward_per_token_stored_numerator

    def test_phases(self):
        pos = UserPosition(user="alice")
        assert pos.phase == PositionPhase.EMPTY
        pos.stake_amount = 10
        assert pos.phase == PositionPhase.STAKED
        pos.withdrawal_request_amount = 5
        pos.withdrawal_request_time = 100
        assert pos.phase == PositionPhase.STAKED_WITH_PENDING_WITHDRAWAL
        pos.stake_amount = 0
        assert pos.phase == PositionPhase.WITHDRAWAL_REQUESTED
        assert pos.withdrawal_unlocks_at(50) == 150
        pos.clear_withdrawal_request()
        assert pos.phase == PositionPhase.EMPTY


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
