"""Staking engine - orchestrates accrual, settlement and the withdrawal escrow.

Every operation follows the same shape:
1. validate inputs against committed state
2. stage copies of the singletons and the acting user's position
3. update the accumulator once, settle the user, apply the operation
4. run asset transfers
5. commit the staged copies and emit an event

Nothing is committed before step 5, so any error leaves the ledger unchanged.
"""

import logging
from typing import TYPE_CHECKING, List, Optional, Sequence

from .clock import Clock
from .errors import (
    InsufficientRewards,
    InvalidAmount,
    NoStakeFound,
    NoWithdrawalRequest,
    StakingError,
    TransferFailed,
    Unauthorized,
    UnauthorizedOwnershipTransfer,
    WithdrawalDelayNotMet,
)
from .events import (
    EventLog,
    Initialized,
    OwnershipTransferFinalized,
    OwnershipTransferInitiated,
    RewardRatioConfigured,
    RewardsAdded,
    Staked,
    WithdrawalDelayConfigured,
    WithdrawalRequested,
    Withdrawn,
    WithdrawnAndForfeitedRewards,
)
from .fixed_point import (
    MAX_WITHDRAWAL_DELAY_DAYS,
    checked_add,
    checked_sub,
    checked_timestamp,
    days_to_seconds,
    is_integer_amount,
    yearly_rate_to_per_second,
)
from .state import RewardAccumulator, Settings, UserPosition
from .store import PositionStore
from .transfers import Account, Transfer, TransferAuthority, TransferService
from .views import RewardBreakdown, current_rewards, reward_breakdown, reward_runway, unallocated_rewards

if TYPE_CHECKING:
    from ..config.schema import ProtocolConfig

logger = logging.getLogger(__name__)


class StakingEngine:
    """Reward-accrual and withdrawal-escrow engine.

    The engine is the only writer of Settings, RewardAccumulator and the
    position store. Accessors hand out copies.
    """

    def __init__(
        self,
        settings: Settings,
        accumulator: RewardAccumulator,
        ledger: TransferService,
        clock: Clock,
        positions: Optional[PositionStore] = None,
        events: Optional[EventLog] = None
    ):
        """
        Initialize engine over existing records.

        Args:
            settings: Protocol settings record
            accumulator: Global reward accumulator record
            ledger: Transfer collaborator holding the staking asset
            clock: Monotonic timestamp source
            positions: Per-user position store (empty if omitted)
            events: Event sink (new log if omitted)
        """
        self._settings = settings
        self._accumulator = accumulator
        self._positions = positions if positions is not None else PositionStore()
        self.ledger = ledger
        self.clock = clock
        self.events = events if events is not None else EventLog()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def initialize(
        cls,
        administrator: str,
        asset_id: str,
        withdrawal_delay_days: int,
        yearly_reward_rate_numerator: int,
        ledger: TransferService,
        clock: Clock,
        positions: Optional[PositionStore] = None,
        events: Optional[EventLog] = None
    ) -> "StakingEngine":
        """
        Create the protocol singletons.

        Args:
            administrator: Identity allowed to run admin operations
            asset_id: Identifier of the staked (and rewarded) asset
            withdrawal_delay_days: Lock window, 0-31 days
            yearly_reward_rate_numerator: Yearly percentage scaled by PRECISION
                (80_000_000_000 = 8%)

        Raises:
            InvalidAmount: If the delay exceeds 31 days or the rate is negative
        """
        if (
            not is_integer_amount(withdrawal_delay_days)
            or withdrawal_delay_days < 0
            or withdrawal_delay_days > MAX_WITHDRAWAL_DELAY_DAYS
        ):
            raise InvalidAmount(
                f"Withdrawal delay must be 0-{MAX_WITHDRAWAL_DELAY_DAYS} whole days, got {withdrawal_delay_days!r}"
            )
        if not is_integer_amount(yearly_reward_rate_numerator) or yearly_reward_rate_numerator < 0:
            raise InvalidAmount(f"Reward rate must be non-negative, got {yearly_reward_rate_numerator}")

        now = checked_timestamp(clock.now())
        settings = Settings(
            administrator=administrator,
            asset_id=asset_id,
            withdrawal_delay_seconds=days_to_seconds(withdrawal_delay_days),
            reward_rate_per_second_per_token_numerator=yearly_rate_to_per_second(
                yearly_reward_rate_numerator
            ),
            pending_administrator=None,
        )
        accumulator = RewardAccumulator(last_update_time=now)

        engine = cls(settings, accumulator, ledger, clock, positions=positions, events=events)
        engine.events.emit(Initialized(
            timestamp=now,
            administrator=administrator,
            asset_id=asset_id,
            withdrawal_delay_seconds=settings.withdrawal_delay_seconds,
            reward_rate_yearly_percentage_numerator=yearly_reward_rate_numerator,
        ))
        return engine

    @classmethod
    def from_config(
        cls,
        config: "ProtocolConfig",
        ledger: TransferService,
        clock: Clock,
        events: Optional[EventLog] = None
    ) -> "StakingEngine":
        """Initialize from the validated protocol section of the configuration."""
        return cls.initialize(
            administrator=config.administrator,
            asset_id=config.asset_id,
            withdrawal_delay_days=config.withdrawal_delay_days,
            yearly_reward_rate_numerator=config.yearly_reward_rate_numerator,
            ledger=ledger,
            clock=clock,
            events=events,
        )

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self._settings.copy()

    @property
    def accumulator(self) -> RewardAccumulator:
        return self._accumulator.copy()

    def position(self, user: str) -> Optional[UserPosition]:
        stored = self._positions.get(user)
        return stored.copy() if stored is not None else None

    def positions(self) -> List[UserPosition]:
        return [p.copy() for p in self._positions]

    def users(self) -> List[str]:
        return self._positions.users()

    def now(self) -> int:
        return checked_timestamp(self.clock.now())

    # ------------------------------------------------------------------
    # Administrator operations
    # ------------------------------------------------------------------

    def add_rewards(self, caller: str, amount: int) -> None:
        """Fund the reward reserve from the administrator's wallet."""
        self._require_admin(caller, "add_rewards")
        if not is_integer_amount(amount) or amount <= 0:
            raise self._reject(
                "add_rewards", InvalidAmount(f"Reward amount must be a positive integer, got {amount!r}")
            )

        now = self.now()
        accumulator = self._accumulator.copy()
        accumulator.add_provided(amount)

        self._run_transfers("add_rewards", [
            Transfer(
                source=Account.wallet(caller),
                destination=Account.treasury(),
                authority=TransferAuthority.owner(caller),
                amount=amount,
            ),
        ])

        self._accumulator = accumulator
        self.events.emit(RewardsAdded(
            timestamp=now,
            administrator=caller,
            amount=amount,
            total_reward_provided=accumulator.total_reward_provided,
        ))

    def configure_reward_ratio(self, caller: str, new_yearly_rate_numerator: int) -> None:
        """
        Change the reward rate.

        The accumulator is brought up to date under the old rate first, so the
        new rate only applies from now on.
        """
        self._require_admin(caller, "configure_reward_ratio")
        if not is_integer_amount(new_yearly_rate_numerator) or new_yearly_rate_numerator < 0:
            raise self._reject(
                "configure_reward_ratio",
                InvalidAmount(f"Reward rate must be a non-negative integer, got {new_yearly_rate_numerator!r}"),
            )

        now = self.now()
        accumulator = self._accumulator.copy()
        accumulator.update(self._settings, now)

        settings = self._settings.copy()
        old_rate = settings.reward_rate_per_second_per_token_numerator
        settings.reward_rate_per_second_per_token_numerator = yearly_rate_to_per_second(
            new_yearly_rate_numerator
        )

        self._accumulator = accumulator
        self._settings = settings
        self.events.emit(RewardRatioConfigured(
            timestamp=now,
            administrator=caller,
            new_reward_rate_yearly_percentage_numerator=new_yearly_rate_numerator,
            old_reward_rate_per_second_per_token_numerator=old_rate,
            new_reward_rate_per_second_per_token_numerator=settings.reward_rate_per_second_per_token_numerator,
        ))

    def configure_withdrawal_delay(self, caller: str, days: int) -> None:
        """Set the withdrawal lock window (0-31 days)."""
        self._require_admin(caller, "configure_withdrawal_delay")
        if not is_integer_amount(days) or days < 0 or days > MAX_WITHDRAWAL_DELAY_DAYS:
            raise self._reject(
                "configure_withdrawal_delay",
                InvalidAmount(f"Withdrawal delay must be 0-{MAX_WITHDRAWAL_DELAY_DAYS} whole days, got {days!r}"),
            )

        now = self.now()
        settings = self._settings.copy()
        old_delay = settings.withdrawal_delay_seconds
        settings.withdrawal_delay_seconds = days_to_seconds(days)

        self._settings = settings
        self.events.emit(WithdrawalDelayConfigured(
            timestamp=now,
            administrator=caller,
            old_withdrawal_delay_seconds=old_delay,
            new_withdrawal_delay_seconds=settings.withdrawal_delay_seconds,
        ))

    def initiate_ownership_transfer(self, caller: str, new_administrator: str) -> None:
        """Record a pending administrator; takes effect once they finalize."""
        self._require_admin(caller, "initiate_ownership_transfer")
        if not new_administrator:
            raise self._reject("initiate_ownership_transfer", InvalidAmount("New administrator is empty"))

        now = self.now()
        settings = self._settings.copy()
        settings.pending_administrator = new_administrator

        self._settings = settings
        self.events.emit(OwnershipTransferInitiated(
            timestamp=now,
            current_administrator=caller,
            new_administrator=new_administrator,
        ))

    def finalize_ownership_transfer(self, caller: str) -> None:
        """Accept a pending transfer. Only the pending administrator may call this."""
        pending = self._settings.pending_administrator
        if pending is None or pending != caller:
            raise self._reject(
                "finalize_ownership_transfer",
                UnauthorizedOwnershipTransfer(f"{caller} is not the pending administrator"),
            )

        now = self.now()
        settings = self._settings.copy()
        old_administrator = settings.administrator
        settings.administrator = caller
        settings.pending_administrator = None

        self._settings = settings
        self.events.emit(OwnershipTransferFinalized(
            timestamp=now,
            old_administrator=old_administrator,
            new_administrator=caller,
        ))

    # ------------------------------------------------------------------
    # User operations
    # ------------------------------------------------------------------

    def stake(self, user: str, amount: int) -> None:
        """
        Deposit `amount` from the user's wallet into their escrow.

        A first-time user starts at the current index and owes nothing for
        earlier history. staked_at marks the start of a streak and is kept
        when topping up an existing stake.

        Raises:
            InvalidAmount: If amount is not positive
            TransferFailed: If the wallet cannot fund the deposit
        """
        if not is_integer_amount(amount) or amount <= 0:
            raise self._reject("stake", InvalidAmount(f"Stake amount must be a positive integer, got {amount!r}"))

        now = self.now()
        stored, created = self._positions.get_or_create(user)
        position = stored.copy()
        accumulator = self._accumulator.copy()

        accumulator.update(self._settings, now)
        if created:
            position.reward_per_token_paid_numerator = accumulator.reward_per_token_stored_numerator
        else:
            position.settle(accumulator)

        if position.stake_amount == 0:
            position.staked_at = now

        position.stake_amount = checked_add(position.stake_amount, amount)
        accumulator.total_staked = checked_add(accumulator.total_staked, amount)

        self._run_transfers("stake", [
            Transfer(
                source=Account.wallet(user),
                destination=Account.escrow(user),
                authority=TransferAuthority.owner(user),
                amount=amount,
            ),
        ])

        self._commit(accumulator, position)
        self.events.emit(Staked(
            timestamp=now,
            user=user,
            amount=amount,
            total_user_staked=position.stake_amount,
            captured_reward=position.captured_reward,
        ))

    def request_withdrawal(self, user: str) -> None:
        """
        Move the whole active stake and captured reward into the pending request.

        Repeated requests add to the pending amounts and restart the timer.

        Raises:
            NoStakeFound: If the user has no active stake
        """
        stored = self._positions.get(user)
        if stored is None or stored.stake_amount == 0:
            raise self._reject("request_withdrawal", NoStakeFound(f"No active stake for {user}"))

        now = self.now()
        position = stored.copy()
        accumulator = self._accumulator.copy()

        accumulator.update(self._settings, now)
        position.settle(accumulator)

        stake_amount = position.stake_amount
        reward_amount = position.captured_reward

        accumulator.total_staked = checked_sub(accumulator.total_staked, stake_amount)
        position.stake_amount = 0
        position.staked_at = 0
        position.captured_reward = 0

        position.withdrawal_request_time = now
        position.withdrawal_request_amount = checked_add(position.withdrawal_request_amount, stake_amount)
        position.withdrawal_request_reward_amount = checked_add(
            position.withdrawal_request_reward_amount, reward_amount
        )

        self._commit(accumulator, position)
        self.events.emit(WithdrawalRequested(
            timestamp=now,
            user=user,
            added_token_amount=stake_amount,
            total_token_amount=position.withdrawal_request_amount,
            added_reward_amount=reward_amount,
            total_reward_amount=position.withdrawal_request_reward_amount,
            withdrawal_request_time=now,
        ))

    def withdraw(self, user: str) -> None:
        """
        Release pending principal from escrow and pending reward from the treasury.

        Both legs pay into the user's wallet.

        Raises:
            NoWithdrawalRequest: If nothing is pending
            WithdrawalDelayNotMet: If called before request_time + delay
            InsufficientRewards: If the treasury cannot cover the pending reward
        """
        stored = self._positions.get(user)
        if stored is None or not stored.has_withdrawal_request:
            raise self._reject("withdraw", NoWithdrawalRequest(f"No pending withdrawal for {user}"))

        now = self.now()
        self._check_delay("withdraw", stored, now)

        reward_amount = stored.withdrawal_request_reward_amount
        treasury_balance = self.ledger.balance_of(Account.treasury())
        if treasury_balance < reward_amount:
            raise self._reject(
                "withdraw",
                InsufficientRewards(f"Treasury holds {treasury_balance}, pending reward is {reward_amount}"),
            )

        position = stored.copy()
        accumulator = self._accumulator.copy()
        accumulator.update(self._settings, now)
        position.settle(accumulator)

        token_amount = position.withdrawal_request_amount
        position.clear_withdrawal_request()

        self._run_transfers("withdraw", [
            Transfer(
                source=Account.escrow(user),
                destination=Account.wallet(user),
                authority=TransferAuthority.user_escrow(user),
                amount=token_amount,
            ),
            Transfer(
                source=Account.treasury(),
                destination=Account.wallet(user),
                authority=TransferAuthority.treasury(),
                amount=reward_amount,
            ),
        ])

        self._commit(accumulator, position)
        self.events.emit(Withdrawn(
            timestamp=now,
            user=user,
            token_amount=token_amount,
            reward_amount=reward_amount,
        ))

    def withdraw_and_forfeit_rewards(self, user: str) -> None:
        """
        Release pending principal only; the pending reward is dropped.

        The forfeited reward stays counted in total_reward_promised and its
        tokens stay in the treasury.

        Raises:
            NoWithdrawalRequest: If no principal is pending
            WithdrawalDelayNotMet: If called before request_time + delay
        """
        stored = self._positions.get(user)
        if stored is None or stored.withdrawal_request_amount == 0:
            raise self._reject(
                "withdraw_and_forfeit_rewards",
                NoWithdrawalRequest(f"No pending principal for {user}"),
            )

        now = self.now()
        self._check_delay("withdraw_and_forfeit_rewards", stored, now)

        position = stored.copy()
        accumulator = self._accumulator.copy()
        accumulator.update(self._settings, now)
        position.settle(accumulator)

        token_amount = position.withdrawal_request_amount
        forfeited = position.withdrawal_request_reward_amount
        position.clear_withdrawal_request()

        self._run_transfers("withdraw_and_forfeit_rewards", [
            Transfer(
                source=Account.escrow(user),
                destination=Account.wallet(user),
                authority=TransferAuthority.user_escrow(user),
                amount=token_amount,
            ),
        ])

        self._commit(accumulator, position)
        self.events.emit(WithdrawnAndForfeitedRewards(
            timestamp=now,
            user=user,
            token_amount=token_amount,
            forfeited_reward_amount=forfeited,
        ))

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def view_current_rewards(self, user: str) -> int:
        """Captured plus uncaptured reward as of now (0 for unknown users)."""
        return current_rewards(self._settings, self._accumulator, self._positions.get(user), self.now())

    def view_reward_breakdown(self, user: str) -> RewardBreakdown:
        return reward_breakdown(self._settings, self._accumulator, self._positions.get(user), self.now())

    def view_unallocated_rewards(self) -> int:
        return unallocated_rewards(self._settings, self._accumulator, self.now())

    def view_reward_runway(self) -> int:
        return reward_runway(self._settings, self._accumulator, self.now())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_admin(self, caller: str, operation: str) -> None:
        if caller != self._settings.administrator:
            raise self._reject(operation, Unauthorized(f"{caller} is not the administrator"))

    def _check_delay(self, operation: str, position: UserPosition, now: int) -> None:
        unlocks_at = position.withdrawal_unlocks_at(self._settings.withdrawal_delay_seconds)
        if now < unlocks_at:
            raise self._reject(
                operation,
                WithdrawalDelayNotMet(f"Unlocks at {unlocks_at}, now is {now} ({unlocks_at - now}s left)"),
            )

    def _reject(self, operation: str, error: StakingError) -> StakingError:
        logger.debug("%s rejected: %s", operation, error)
        return error

    def _run_transfers(self, operation: str, transfers: Sequence[Transfer]) -> None:
        """
        Execute transfer legs in order; zero-amount legs are skipped.

        If a leg fails, legs that already went through are reversed so the
        operation has no observable effect.

        Raises:
            TransferFailed: If any leg is rejected
        """
        completed: List[Transfer] = []
        for leg in transfers:
            if leg.amount == 0:
                continue
            ok = self.ledger.transfer(leg.source, leg.destination, leg.authority, leg.amount)
            if ok:
                completed.append(leg)
                continue

            for done in reversed(completed):
                undo = done.reversed()
                if not self.ledger.transfer(undo.source, undo.destination, undo.authority, undo.amount):
                    logger.error("%s: failed to reverse transfer %s", operation, done)
                    raise TransferFailed(
                        f"{operation}: transfer {leg.source} -> {leg.destination} failed "
                        f"and reversal of {done.source} -> {done.destination} also failed"
                    )
            logger.warning(
                "%s: transfer of %s from %s to %s rejected", operation, leg.amount, leg.source, leg.destination
            )
            raise TransferFailed(f"{operation}: transfer {leg.source} -> {leg.destination} of {leg.amount} failed")

    def _commit(self, accumulator: RewardAccumulator, position: UserPosition) -> None:
        self._accumulator = accumulator
        self._positions.put(position)
