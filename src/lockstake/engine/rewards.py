"""Reward accrual mechanics - global reward-per-token index and per-user settlement.

Key Concepts:
- The accumulator index grows by rate * elapsed for every second in which
  anything is staked: index(t) = Σ rate_i * dt_i
- A user's share since their last settlement is stake * (index - paid) / PRECISION
- Settling sets paid = index, so each second of accrual is counted exactly once
  per user regardless of how many other users or rate changes exist
"""

from typing import TYPE_CHECKING

from .errors import MathOverflow
from .fixed_point import PRECISION, checked_add, checked_mul, scaled_mul_div

if TYPE_CHECKING:
    from .state import RewardAccumulator, Settings, UserPosition


def compute_reward_increment(rate_per_second_numerator: int, elapsed_seconds: int) -> int:
    """
    Compute the index increment for an elapsed interval.

    Formula: increment = rate * elapsed

    Args:
        rate_per_second_numerator: Per-second-per-token rate (scaled)
        elapsed_seconds: Seconds since the last update

    Returns:
        Scaled index increment
    """
    if elapsed_seconds < 0:
        raise MathOverflow(f"Clock moved backwards by {-elapsed_seconds}s")
    return checked_mul(rate_per_second_numerator, elapsed_seconds)


def compute_total_new_reward(total_staked: int, reward_increment: int) -> int:
    """Reward promised to all stakers for one index increment (floored)."""
    return scaled_mul_div(total_staked, reward_increment, PRECISION)


def compute_uncaptured_reward(
    stake_amount: int,
    reward_per_token_stored_numerator: int,
    reward_per_token_paid_numerator: int,
) -> int:
    """
    Compute reward earned since the user's last settlement.

    Formula: uncaptured = stake * (stored - paid) / PRECISION  (floored)

    Raises:
        MathOverflow: If the user's snapshot is ahead of the global index
    """
    if reward_per_token_stored_numerator < reward_per_token_paid_numerator:
        raise MathOverflow(
            "Reward index behind user snapshot: "
            f"stored={reward_per_token_stored_numerator}, paid={reward_per_token_paid_numerator}"
        )
    diff = reward_per_token_stored_numerator - reward_per_token_paid_numerator
    return scaled_mul_div(stake_amount, diff, PRECISION)


def project_reward_per_token(settings: "Settings", accumulator: "RewardAccumulator", now: int) -> int:
    """Index value an update at `now` would produce, without mutating anything."""
    elapsed = now - accumulator.last_update_time
    if accumulator.total_staked == 0:
        if elapsed < 0:
            raise MathOverflow(f"Clock moved backwards by {-elapsed}s")
        return accumulator.reward_per_token_stored_numerator
    increment = compute_reward_increment(
        settings.reward_rate_per_second_per_token_numerator, elapsed
    )
    return checked_add(accumulator.reward_per_token_stored_numerator, increment)


def project_total_reward_promised(settings: "Settings", accumulator: "RewardAccumulator", now: int) -> int:
    """total_reward_promised as it would be after an update at `now`."""
    elapsed = now - accumulator.last_update_time
    if accumulator.total_staked == 0:
        if elapsed < 0:
            raise MathOverflow(f"Clock moved backwards by {-elapsed}s")
        return accumulator.total_reward_promised
    increment = compute_reward_increment(
        settings.reward_rate_per_second_per_token_numerator, elapsed
    )
    return checked_add(
        accumulator.total_reward_promised,
        compute_total_new_reward(accumulator.total_staked, increment),
    )


def update_accumulator(settings: "Settings", accumulator: "RewardAccumulator", now: int) -> int:
    """
    Advance the global accumulator to `now`.

    With nothing staked only the timestamp moves, so idle periods never
    accrue phantom rewards.

    Args:
        settings: Protocol settings (reward rate)
        accumulator: Accumulator to mutate in place
        now: Current timestamp (must be >= last_update_time)

    Returns:
        The index increment that was applied
    """
    elapsed = now - accumulator.last_update_time
    if elapsed < 0:
        raise MathOverflow(
            f"Clock moved backwards: now={now}, last_update_time={accumulator.last_update_time}"
        )

    if accumulator.total_staked == 0:
        accumulator.last_update_time = now
        return 0

    if elapsed == 0:
        return 0

    increment = compute_reward_increment(
        settings.reward_rate_per_second_per_token_numerator, elapsed
    )
    new_index = checked_add(accumulator.reward_per_token_stored_numerator, increment)
    new_promised = checked_add(
        accumulator.total_reward_promised,
        compute_total_new_reward(accumulator.total_staked, increment),
    )

    accumulator.reward_per_token_stored_numerator = new_index
    accumulator.total_reward_promised = new_promised
    accumulator.last_update_time = now
    return increment


def settle_position(accumulator: "RewardAccumulator", position: "UserPosition") -> int:
    """
    Fold the user's uncaptured reward into captured_reward.

    Must run right after update_accumulator. Calling it again without time
    passing captures nothing.

    Returns:
        Newly captured reward
    """
    uncaptured = compute_uncaptured_reward(
        position.stake_amount,
        accumulator.reward_per_token_stored_numerator,
        position.reward_per_token_paid_numerator,
    )
    position.captured_reward = checked_add(position.captured_reward, uncaptured)
    position.reward_per_token_paid_numerator = accumulator.reward_per_token_stored_numerator
    return uncaptured
