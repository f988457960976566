"""Staking error taxonomy.

Every error is raised before any state is committed, so a caller that catches
one can assume the ledger is exactly as it was before the call.
"""

from typing import Optional


class StakingError(Exception):
    """Base class for all ledger rejections."""

    code = "staking_error"
    default_message = "Staking operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class InvalidAmount(StakingError):
    code = "invalid_amount"
    default_message = "Invalid amount provided"


class NoStakeFound(StakingError):
    code = "no_stake_found"
    default_message = "No stake found for user"


class NoWithdrawalRequest(StakingError):
    code = "no_withdrawal_request"
    default_message = "No withdrawal request found"


class WithdrawalDelayNotMet(StakingError):
    code = "withdrawal_delay_not_met"
    default_message = "Withdrawal delay period has not been met"


class InsufficientRewards(StakingError):
    code = "insufficient_rewards"
    default_message = "Insufficient rewards in pool"


class MathOverflow(StakingError):
    code = "math_overflow"
    default_message = "Math overflow occurred"


class UnauthorizedOwnershipTransfer(StakingError):
    code = "unauthorized_ownership_transfer"
    default_message = "Unauthorized ownership transfer"


class Unauthorized(StakingError):
    """Caller is not the configured administrator."""
    code = "unauthorized"
    default_message = "Caller is not the administrator"


class TransferFailed(StakingError):
    """The transfer service rejected a leg of the operation."""
    code = "transfer_failed"
    default_message = "Asset transfer failed"
