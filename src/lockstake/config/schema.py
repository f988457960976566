"""Pydantic schema for configuration validation."""

import hashlib
import json
from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator, model_validator

from ..engine.fixed_point import MAX_WITHDRAWAL_DELAY_DAYS, SECONDS_PER_YEAR, U64_MAX


class ProtocolConfig(BaseModel):
    """Protocol parameters passed to initialize."""
    administrator: str = Field(min_length=1, description="Administrator identity")
    asset_id: str = Field(min_length=1, description="Identifier of the staked asset")
    withdrawal_delay_days: int = Field(
        ge=0, le=MAX_WITHDRAWAL_DELAY_DAYS,
        description="Lock window between withdrawal request and release"
    )
    yearly_reward_rate_numerator: int = Field(
        ge=0, le=U64_MAX,
        description="Yearly reward percentage scaled by 1e12 (80_000_000_000 = 8%)"
    )
    initial_reward_funding: int = Field(
        ge=0, le=U64_MAX, default=0,
        description="Reward tokens the administrator adds right after initialization"
    )

    @field_validator("yearly_reward_rate_numerator")
    @classmethod
    def validate_rate_resolution(cls, v):
        """Reject non-zero rates that floor to a zero per-second rate."""
        if 0 < v < SECONDS_PER_YEAR:
            raise ValueError(
                f"yearly_reward_rate_numerator={v} floors to a zero per-second rate; "
                f"use 0 or at least {SECONDS_PER_YEAR}"
            )
        return v


class SimulationConfig(BaseModel):
    """Randomized operation schedule for the simulator."""
    num_users: int = Field(gt=0, description="Number of simulated stakers")
    num_steps: int = Field(gt=0, description="Number of operations to attempt")
    max_step_seconds: int = Field(gt=0, description="Upper bound on clock advance between operations")
    min_stake: int = Field(gt=0, description="Smallest stake drawn")
    max_stake: int = Field(gt=0, description="Largest stake drawn")
    user_starting_balance: int = Field(ge=0, description="Wallet balance minted to each user")
    admin_starting_balance: int = Field(ge=0, description="Wallet balance minted to the administrator")
    top_up_amount: int = Field(gt=0, description="Reward tokens added per add_rewards action")
    rate_change_max_numerator: int = Field(
        ge=0, description="Largest yearly rate numerator drawn for rate changes"
    )
    random_seed: int = Field(description="Random seed for reproducibility")
    start_time: int = Field(ge=0, default=1_700_000_000, description="Initial clock timestamp")

    # Relative action weights
    stake_weight: float = Field(ge=0, default=0.45)
    request_withdrawal_weight: float = Field(ge=0, default=0.15)
    withdraw_weight: float = Field(ge=0, default=0.15)
    forfeit_weight: float = Field(ge=0, default=0.05)
    rate_change_weight: float = Field(ge=0, default=0.05)
    add_rewards_weight: float = Field(ge=0, default=0.05)
    delay_change_weight: float = Field(ge=0, default=0.02)

    @model_validator(mode='after')
    def validate_ranges(self):
        """Ensure stake bounds are ordered and some action can happen."""
        if self.min_stake > self.max_stake:
            raise ValueError(
                f"min_stake ({self.min_stake}) must not exceed max_stake ({self.max_stake})"
            )
        if sum(self.action_weights().values()) <= 0:
            raise ValueError("At least one action weight must be positive")
        return self

    def action_weights(self) -> Dict[str, float]:
        return {
            'stake': self.stake_weight,
            'request_withdrawal': self.request_withdrawal_weight,
            'withdraw': self.withdraw_weight,
            'withdraw_and_forfeit_rewards': self.forfeit_weight,
            'configure_reward_ratio': self.rate_change_weight,
            'add_rewards': self.add_rewards_weight,
            'configure_withdrawal_delay': self.delay_change_weight,
        }


class Config(BaseModel):
    """Complete configuration for the staking ledger."""
    protocol: ProtocolConfig
    simulation: SimulationConfig

    def compute_hash(self) -> str:
        """Compute config hash for reproducibility."""
        config_dict = self.model_dump()
        config_str = json.dumps(config_dict, sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create config from dictionary."""
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return self.model_dump()
