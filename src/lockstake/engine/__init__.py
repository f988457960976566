"""Reward accrual, settlement and withdrawal escrow engine."""

from .clock import Clock, ManualClock, SystemClock
from .errors import (
    InsufficientRewards,
    InvalidAmount,
    MathOverflow,
    NoStakeFound,
    NoWithdrawalRequest,
    StakingError,
    TransferFailed,
    Unauthorized,
    UnauthorizedOwnershipTransfer,
    WithdrawalDelayNotMet,
)
from .events import EventLog, LedgerEvent
from .fixed_point import PRECISION, SECONDS_PER_DAY, SECONDS_PER_YEAR, scaled_mul_div
from .ledger import StakingEngine
from .state import PositionPhase, RewardAccumulator, Settings, UserPosition
from .store import PositionStore
from .transfers import Account, InMemoryTokenLedger, Transfer, TransferAuthority, TransferService
from .views import INFINITE_RUNWAY, RewardBreakdown

__all__ = [
    # Engine
    "StakingEngine",
    # Records
    "Settings",
    "RewardAccumulator",
    "UserPosition",
    "PositionPhase",
    "PositionStore",
    # Collaborators
    "Account",
    "Transfer",
    "TransferAuthority",
    "TransferService",
    "InMemoryTokenLedger",
    "Clock",
    "ManualClock",
    "SystemClock",
    "EventLog",
    "LedgerEvent",
    # Math
    "PRECISION",
    "SECONDS_PER_DAY",
    "SECONDS_PER_YEAR",
    "scaled_mul_div",
    "INFINITE_RUNWAY",
    "RewardBreakdown",
    # Errors
    "StakingError",
    "InvalidAmount",
    "NoStakeFound",
    "NoWithdrawalRequest",
    "WithdrawalDelayNotMet",
    "InsufficientRewards",
    "MathOverflow",
    "UnauthorizedOwnershipTransfer",
    "Unauthorized",
    "TransferFailed",
]
