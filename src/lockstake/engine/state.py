"""Ledger records - protocol settings, global reward accumulator and user positions.

Record Semantics:
- Settings: singleton, mutated only by administrator operations
- RewardAccumulator: singleton; reward_per_token_stored_numerator and
  total_reward_promised never decrease
- UserPosition: one per user, created lazily on first stake and never deleted;
  zeroed fields mean "empty" and allow restaking

Conservation Identity:
total_staked = Σ UserPosition.stake_amount over all users

Solvency (observed, not enforced):
unallocated = total_reward_provided - total_reward_promised  (may be negative)
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional

from .fixed_point import U32_MAX, U64_MAX, checked_add
from .rewards import (
    project_reward_per_token,
    project_total_reward_promised,
    settle_position,
    update_accumulator,
)


class PositionPhase(str, Enum):
    """Lifecycle phase of a user's principal."""
    EMPTY = "empty"
    STAKED = "staked"
    WITHDRAWAL_REQUESTED = "withdrawal_requested"
    STAKED_WITH_PENDING_WITHDRAWAL = "staked_with_pending_withdrawal"


@dataclass
class Settings:
    """Protocol-wide configuration."""
    administrator: str
    asset_id: str
    withdrawal_delay_seconds: int
    reward_rate_per_second_per_token_numerator: int
    pending_administrator: Optional[str] = None

    def copy(self) -> "Settings":
        return replace(self)


@dataclass
class RewardAccumulator:
    """Global running totals and the reward-per-token index."""
    reward_per_token_stored_numerator: int = 0
    last_update_time: int = 0  # u32 seconds
    total_staked: int = 0
    total_reward_promised: int = 0
    total_reward_provided: int = 0

    def copy(self) -> "RewardAccumulator":
        return replace(self)

    def update(self, settings: Settings, now: int) -> int:
        """Advance to `now`; returns the index increment applied."""
        return update_accumulator(settings, self, now)

    def projected_reward_per_token(self, settings: Settings, now: int) -> int:
        return project_reward_per_token(settings, self, now)

    def projected_total_reward_promised(self, settings: Settings, now: int) -> int:
        return project_total_reward_promised(settings, self, now)

    def unallocated_rewards(self, settings: Settings, now: int) -> int:
        """Funded reward minus reward promised up to `now` (signed)."""
        return self.total_reward_provided - self.projected_total_reward_promised(settings, now)

    def add_provided(self, amount: int) -> None:
        self.total_reward_provided = checked_add(self.total_reward_provided, amount)

    def validate_ranges(self) -> tuple[bool, Optional[str]]:
        """Check every field is inside its on-chain integer range."""
        fields = [
            ('reward_per_token_stored_numerator', self.reward_per_token_stored_numerator, U64_MAX),
            ('last_update_time', self.last_update_time, U32_MAX),
            ('total_staked', self.total_staked, U64_MAX),
            ('total_reward_promised', self.total_reward_promised, U64_MAX),
            ('total_reward_provided', self.total_reward_provided, U64_MAX),
        ]
        for name, value, upper in fields:
            if value < 0 or value > upper:
                return False, f"Accumulator field out of range: {name}={value}"
        return True, None

    def validate_stake_conservation(
        self,
        positions: Iterable["UserPosition"]
    ) -> tuple[bool, Optional[str]]:
        """
        Validate total_staked == Σ stake_amount.

        Returns:
            (is_valid, error_message)
        """
        positions = list(positions)
        computed = sum(p.stake_amount for p in positions)
        if computed != self.total_staked:
            return False, (
                f"Stake conservation violation: total_staked={self.total_staked}, "
                f"sum(stake_amount)={computed}, users={len(positions)}"
            )
        return True, None


@dataclass
class UserPosition:
    """A single user's stake, settled reward and pending withdrawal."""
    user: str
    stake_amount: int = 0
    staked_at: int = 0  # start of the current stake streak, 0 when empty
    reward_per_token_paid_numerator: int = 0
    captured_reward: int = 0
    withdrawal_request_time: int = 0
    withdrawal_request_amount: int = 0
    withdrawal_request_reward_amount: int = 0

    def copy(self) -> "UserPosition":
        return replace(self)

    def settle(self, accumulator: RewardAccumulator) -> int:
        """Capture reward accrued since the last settlement."""
        return settle_position(accumulator, self)

    @property
    def has_stake(self) -> bool:
        return self.stake_amount > 0

    @property
    def has_withdrawal_request(self) -> bool:
        return self.withdrawal_request_amount > 0 or self.withdrawal_request_reward_amount > 0

    @property
    def phase(self) -> PositionPhase:
        if self.has_stake and self.has_withdrawal_request:
            return PositionPhase.STAKED_WITH_PENDING_WITHDRAWAL
        if self.has_stake:
            return PositionPhase.STAKED
        if self.has_withdrawal_request:
            return PositionPhase.WITHDRAWAL_REQUESTED
        return PositionPhase.EMPTY

    def withdrawal_unlocks_at(self, withdrawal_delay_seconds: int) -> int:
        """Earliest timestamp at which the pending request can be released."""
        return self.withdrawal_request_time + withdrawal_delay_seconds

    def clear_withdrawal_request(self) -> None:
        self.withdrawal_request_time = 0
        self.withdrawal_request_amount = 0
        self.withdrawal_request_reward_amount = 0
