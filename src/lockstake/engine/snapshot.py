"""Point-in-time view of the whole ledger, used by validation, simulation and reports."""

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Dict

from .transfers import Account
from .views import INFINITE_RUNWAY

if TYPE_CHECKING:
    from .ledger import StakingEngine


@dataclass(frozen=True)
class LedgerSnapshot:
    """Ledger totals at time t."""
    t: int
    reward_per_token_stored_numerator: int
    total_staked: int
    total_reward_promised: int
    total_reward_provided: int
    unallocated_rewards: int
    reward_runway_seconds: int
    reward_rate_per_second_per_token_numerator: int
    withdrawal_delay_seconds: int
    sum_user_stake: int
    pending_withdrawal_principal: int
    pending_withdrawal_rewards: int
    treasury_balance: int
    escrow_balance: int
    num_users: int
    num_stakers: int

    @property
    def runway_is_infinite(self) -> bool:
        return self.reward_runway_seconds == INFINITE_RUNWAY

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def take_snapshot(engine: "StakingEngine") -> LedgerSnapshot:
    """Capture ledger totals as of the engine clock."""
    settings = engine.settings
    accumulator = engine.accumulator
    positions = engine.positions()

    escrow_balance = sum(engine.ledger.balance_of(Account.escrow(p.user)) for p in positions)

    return LedgerSnapshot(
        t=engine.now(),
        reward_per_token_stored_numerator=accumulator.reward_per_token_stored_numerator,
        total_staked=accumulator.total_staked,
        total_reward_promised=accumulator.total_reward_promised,
        total_reward_provided=accumulator.total_reward_provided,
        unallocated_rewards=engine.view_unallocated_rewards(),
        reward_runway_seconds=engine.view_reward_runway(),
        reward_rate_per_second_per_token_numerator=settings.reward_rate_per_second_per_token_numerator,
        withdrawal_delay_seconds=settings.withdrawal_delay_seconds,
        sum_user_stake=sum(p.stake_amount for p in positions),
        pending_withdrawal_principal=sum(p.withdrawal_request_amount for p in positions),
        pending_withdrawal_rewards=sum(p.withdrawal_request_reward_amount for p in positions),
        treasury_balance=engine.ledger.balance_of(Account.treasury()),
        escrow_balance=escrow_balance,
        num_users=len(positions),
        num_stakers=sum(1 for p in positions if p.stake_amount > 0),
    )
