"""Read-only projections of the ledger at a given instant.

These reuse the accrual formulas on projected values and never mutate the
records they are given.
"""

from dataclasses import dataclass
from typing import Optional

from .fixed_point import PRECISION, U32_MAX, U64_MAX, checked_add, scaled_mul_div
from .rewards import compute_uncaptured_reward
from .state import RewardAccumulator, Settings, UserPosition

# Runway sentinel when nothing is being consumed or the runway is too long to represent
INFINITE_RUNWAY = U64_MAX


@dataclass(frozen=True)
class RewardBreakdown:
    """A user's reward split into settled and not-yet-settled parts."""
    captured: int
    uncaptured: int

    @property
    def total(self) -> int:
        return self.captured + self.uncaptured


def reward_breakdown(
    settings: Settings,
    accumulator: RewardAccumulator,
    position: Optional[UserPosition],
    now: int
) -> RewardBreakdown:
    """
    Project a user's rewards to `now` without settling.

    The uncaptured part equals exactly what settle() would capture if the
    accumulator were updated at the same instant.
    """
    if position is None:
        return RewardBreakdown(captured=0, uncaptured=0)

    projected_index = accumulator.projected_reward_per_token(settings, now)
    uncaptured = compute_uncaptured_reward(
        position.stake_amount,
        projected_index,
        position.reward_per_token_paid_numerator,
    )
    return RewardBreakdown(captured=position.captured_reward, uncaptured=uncaptured)


def current_rewards(
    settings: Settings,
    accumulator: RewardAccumulator,
    position: Optional[UserPosition],
    now: int
) -> int:
    """Captured plus projected uncaptured reward."""
    breakdown = reward_breakdown(settings, accumulator, position, now)
    return checked_add(breakdown.captured, breakdown.uncaptured)


def unallocated_rewards(settings: Settings, accumulator: RewardAccumulator, now: int) -> int:
    """Funded reward minus reward promised up to `now`. Negative means under-funded."""
    return accumulator.unallocated_rewards(settings, now)


def reward_consumption_per_second(settings: Settings, accumulator: RewardAccumulator) -> int:
    """Reward promised per second at the current stake and rate (floored)."""
    return scaled_mul_div(
        accumulator.total_staked,
        settings.reward_rate_per_second_per_token_numerator,
        PRECISION,
    )


def reward_runway(settings: Settings, accumulator: RewardAccumulator, now: int) -> int:
    """
    Seconds until unallocated reward reaches zero at the current consumption rate.

    Returns:
        Runway in seconds, 0 when already under-funded, or INFINITE_RUNWAY
        when nothing is consumed or the runway exceeds the u32 range
    """
    unallocated = unallocated_rewards(settings, accumulator, now)
    available = unallocated if unallocated > 0 else 0

    per_second = reward_consumption_per_second(settings, accumulator)
    if per_second == 0:
        return INFINITE_RUNWAY

    runway_seconds = available // per_second
    if runway_seconds > U32_MAX:
        return INFINITE_RUNWAY
    return runway_seconds
