"""Sanity checks and invariant validation for ledger configuration and state."""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..config.schema import Config
from ..engine.fixed_point import SECONDS_PER_YEAR, per_second_rate_to_apr_percent, yearly_rate_to_per_second
from ..engine.snapshot import LedgerSnapshot
from ..engine.state import RewardAccumulator, Settings, UserPosition
from ..engine.transfers import Account, TransferService


@dataclass
class ValidationWarning:
    """A validation warning with severity and message."""
    severity: str  # "warning" or "error"
    category: str  # e.g., "input", "conservation", "monotonicity", "solvency"
    message: str
    details: Optional[str] = None


class InvariantChecker:
    """Run sanity checks on configuration and ledger state."""

    def __init__(self, config: Optional[Config] = None):
        """Initialize with an optional configuration."""
        self.config = config

    def check_config_inputs(self) -> List[ValidationWarning]:
        """
        Check configuration inputs for implausible values.

        Returns:
            List of validation warnings
        """
        warnings = []
        if self.config is None:
            return warnings

        protocol = self.config.protocol
        rate = yearly_rate_to_per_second(protocol.yearly_reward_rate_numerator)
        apr = per_second_rate_to_apr_percent(rate)

        if protocol.yearly_reward_rate_numerator == 0:
            warnings.append(ValidationWarning(
                severity="warning",
                category="input",
                message="Reward rate is zero; stakers will earn nothing",
            ))
        elif apr > 50.0:
            warnings.append(ValidationWarning(
                severity="warning",
                category="bounds",
                message=f"Reward rate of {apr:.2f}% APR is unusually high",
                details=f"Per-second rate numerator: {rate}",
            ))

        # Truncation to a per-second rate loses part of the yearly rate
        requested = protocol.yearly_reward_rate_numerator
        effective = rate * SECONDS_PER_YEAR
        if requested > 0 and (requested - effective) / requested > 0.001:
            warnings.append(ValidationWarning(
                severity="warning",
                category="precision",
                message="Per-second rate truncation loses more than 0.1% of the yearly rate",
                details=f"Requested {requested}, effective {effective}",
            ))

        if protocol.withdrawal_delay_days == 0:
            warnings.append(ValidationWarning(
                severity="warning",
                category="input",
                message="Withdrawal delay is zero; requests can be released immediately",
            ))

        simulation = self.config.simulation
        if simulation.admin_starting_balance < protocol.initial_reward_funding:
            warnings.append(ValidationWarning(
                severity="error",
                category="input",
                message="Administrator cannot afford the initial reward funding",
                details=(
                    f"Balance {simulation.admin_starting_balance:,} < "
                    f"funding {protocol.initial_reward_funding:,}"
                ),
            ))

        if simulation.user_starting_balance < simulation.min_stake:
            warnings.append(ValidationWarning(
                severity="warning",
                category="input",
                message="Users cannot afford the minimum stake",
                details=f"Balance {simulation.user_starting_balance:,} < min stake {simulation.min_stake:,}",
            ))

        return warnings

    def check_stake_conservation(
        self,
        accumulator: RewardAccumulator,
        positions: Iterable[UserPosition]
    ) -> List[ValidationWarning]:
        """Check total_staked against the sum of user stakes."""
        warnings = []
        is_valid, error_msg = accumulator.validate_stake_conservation(positions)
        if not is_valid:
            warnings.append(ValidationWarning(
                severity="error",
                category="conservation",
                message="Stake conservation violated",
                details=error_msg,
            ))
        is_valid, error_msg = accumulator.validate_ranges()
        if not is_valid:
            warnings.append(ValidationWarning(
                severity="error",
                category="bounds",
                message="Accumulator field out of range",
                details=error_msg,
            ))
        return warnings

    def check_monotonicity(
        self,
        previous: RewardAccumulator,
        current: RewardAccumulator
    ) -> List[ValidationWarning]:
        """Index, promised and provided totals and the update time must never decrease."""
        warnings = []
        checks = [
            ('reward_per_token_stored_numerator',
             previous.reward_per_token_stored_numerator, current.reward_per_token_stored_numerator),
            ('total_reward_promised', previous.total_reward_promised, current.total_reward_promised),
            ('total_reward_provided', previous.total_reward_provided, current.total_reward_provided),
            ('last_update_time', previous.last_update_time, current.last_update_time),
        ]
        for name, before, after in checks:
            if after < before:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="monotonicity",
                    message=f"{name} decreased",
                    details=f"{before} -> {after}",
                ))
        return warnings

    def check_solvency(
        self,
        settings: Settings,
        accumulator: RewardAccumulator,
        now: int
    ) -> List[ValidationWarning]:
        """Warn when more reward has been promised than funded."""
        warnings = []
        unallocated = accumulator.unallocated_rewards(settings, now)
        if unallocated < 0:
            warnings.append(ValidationWarning(
                severity="warning",
                category="solvency",
                message="Reward pool is under-funded",
                details=f"Unallocated rewards: {unallocated:,}",
            ))
        return warnings

    def check_escrow_balances(
        self,
        ledger: TransferService,
        positions: Iterable[UserPosition]
    ) -> List[ValidationWarning]:
        """Each escrow must hold the user's active stake plus pending principal."""
        warnings = []
        for position in positions:
            expected = position.stake_amount + position.withdrawal_request_amount
            actual = ledger.balance_of(Account.escrow(position.user))
            if actual != expected:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="conservation",
                    message=f"Escrow balance mismatch for {position.user}",
                    details=f"Escrow holds {actual:,}, ledger expects {expected:,}",
                ))
        return warnings

    def check_snapshot(self, snapshot: LedgerSnapshot) -> List[ValidationWarning]:
        """Check a ledger snapshot for issues."""
        warnings = []

        if snapshot.sum_user_stake != snapshot.total_staked:
            warnings.append(ValidationWarning(
                severity="error",
                category="conservation",
                message=f"Stake conservation violated at t={snapshot.t}",
                details=f"total_staked={snapshot.total_staked:,}, sum={snapshot.sum_user_stake:,}",
            ))

        expected_escrow = snapshot.total_staked + snapshot.pending_withdrawal_principal
        if snapshot.escrow_balance != expected_escrow:
            warnings.append(ValidationWarning(
                severity="error",
                category="conservation",
                message=f"Escrow balances diverge from ledger at t={snapshot.t}",
                details=f"escrow={snapshot.escrow_balance:,}, expected={expected_escrow:,}",
            ))

        if snapshot.unallocated_rewards < 0:
            warnings.append(ValidationWarning(
                severity="warning",
                category="solvency",
                message=f"Reward pool under-funded at t={snapshot.t}",
                details=f"Unallocated rewards: {snapshot.unallocated_rewards:,}",
            ))

        return warnings


def validate_simulation_results(
    config: Optional[Config],
    snapshots: List[LedgerSnapshot]
) -> List[ValidationWarning]:
    """
    Validate a sequence of ledger snapshots.

    Args:
        config: Simulation configuration
        snapshots: Snapshots in time order

    Returns:
        List of all validation warnings
    """
    checker = InvariantChecker(config)
    warnings = []

    warnings.extend(checker.check_config_inputs())

    for snapshot in snapshots:
        warnings.extend(checker.check_snapshot(snapshot))

    for previous, current in zip(snapshots, snapshots[1:]):
        if current.t < previous.t:
            warnings.append(ValidationWarning(
                severity="error",
                category="monotonicity",
                message="Snapshot time went backwards",
                details=f"{previous.t} -> {current.t}",
            ))
        for name in ('reward_per_token_stored_numerator', 'total_reward_promised', 'total_reward_provided'):
            before = getattr(previous, name)
            after = getattr(current, name)
            if after < before:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="monotonicity",
                    message=f"{name} decreased at t={current.t}",
                    details=f"{before} -> {after}",
                ))

    return warnings
