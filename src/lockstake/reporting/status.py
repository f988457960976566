"""Protocol and user status reports."""

from datetime import datetime, timezone
from typing import Any, Dict

from ..engine.fixed_point import SECONDS_PER_DAY, per_second_rate_to_apr_percent
from ..engine.ledger import StakingEngine
from ..engine.transfers import Account
from ..engine.views import INFINITE_RUNWAY


def _format_time(timestamp: int) -> str:
    if timestamp == 0:
        return "-"
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _format_runway(seconds: int) -> str:
    if seconds == INFINITE_RUNWAY:
        return "∞ (no consumption or beyond u32 range)"
    return f"{seconds:,} seconds ({seconds / SECONDS_PER_DAY:.1f} days)"


def protocol_status(engine: StakingEngine) -> Dict[str, Any]:
    """Collect settings, accumulator totals and reserve health."""
    settings = engine.settings
    accumulator = engine.accumulator
    now = engine.now()

    return {
        'now': now,
        'administrator': settings.administrator,
        'pending_administrator': settings.pending_administrator,
        'asset_id': settings.asset_id,
        'withdrawal_delay_seconds': settings.withdrawal_delay_seconds,
        'withdrawal_delay_days': settings.withdrawal_delay_seconds / SECONDS_PER_DAY,
        'reward_rate_per_second_per_token_numerator': settings.reward_rate_per_second_per_token_numerator,
        'apr_percent': per_second_rate_to_apr_percent(settings.reward_rate_per_second_per_token_numerator),
        'reward_per_token_stored_numerator': accumulator.reward_per_token_stored_numerator,
        'last_update_time': accumulator.last_update_time,
        'total_staked': accumulator.total_staked,
        'total_reward_promised': accumulator.total_reward_promised,
        'total_reward_provided': accumulator.total_reward_provided,
        # stored values only, not projected to now
        'stored_unallocated_rewards': accumulator.total_reward_provided - accumulator.total_reward_promised,
        'unallocated_rewards': engine.view_unallocated_rewards(),
        'reward_runway_seconds': engine.view_reward_runway(),
        'treasury_balance': engine.ledger.balance_of(Account.treasury()),
        'num_users': len(engine.users()),
    }


def user_status(engine: StakingEngine, user: str) -> Dict[str, Any]:
    """Collect one user's position, projected rewards and withdrawal timing."""
    position = engine.position(user)
    now = engine.now()
    delay = engine.settings.withdrawal_delay_seconds

    if position is None:
        return {'user': user, 'exists': False, 'now': now}

    breakdown = engine.view_reward_breakdown(user)
    unlocks_at = position.withdrawal_unlocks_at(delay) if position.has_withdrawal_request else 0

    return {
        'user': user,
        'exists': True,
        'now': now,
        'phase': position.phase.value,
        'stake_amount': position.stake_amount,
        'staked_at': position.staked_at,
        'reward_per_token_paid_numerator': position.reward_per_token_paid_numerator,
        'captured_reward': breakdown.captured,
        'uncaptured_reward': breakdown.uncaptured,
        'total_reward': breakdown.total,
        'withdrawal_request_time': position.withdrawal_request_time,
        'withdrawal_request_amount': position.withdrawal_request_amount,
        'withdrawal_request_reward_amount': position.withdrawal_request_reward_amount,
        'withdrawal_unlocks_at': unlocks_at,
        'withdrawal_ready': position.has_withdrawal_request and now >= unlocks_at,
        'wallet_balance': engine.ledger.balance_of(Account.wallet(user)),
        'escrow_balance': engine.ledger.balance_of(Account.escrow(user)),
    }


def format_protocol_status(status: Dict[str, Any]) -> str:
    """Render protocol_status() as plain text."""
    lines = [
        "SETTINGS",
        "-" * 30,
        f"Administrator: {status['administrator']}",
        f"Pending Administrator: {status['pending_administrator'] or 'None'}",
        f"Asset: {status['asset_id']}",
        f"Withdrawal Delay: {status['withdrawal_delay_seconds']:,} seconds "
        f"({status['withdrawal_delay_days']:g} days)",
        f"Reward Rate (per second per token): {status['reward_rate_per_second_per_token_numerator']:,}",
        f"Current APR: {status['apr_percent']:.2f}%",
        "",
        "STATS",
        "-" * 30,
        f"Reward Per Token Stored: {status['reward_per_token_stored_numerator']:,}",
        f"Last Update Time: {_format_time(status['last_update_time'])}",
        f"Total Staked: {status['total_staked']:,}",
        f"Total Reward Promised: {status['total_reward_promised']:,}",
        f"Total Reward Provided: {status['total_reward_provided']:,}",
        f"Unallocated Rewards (stored): {status['stored_unallocated_rewards']:,}",
        "",
        "PROTOCOL HEALTH",
        "-" * 30,
        f"Treasury Balance: {status['treasury_balance']:,}",
        f"Unallocated Rewards: {status['unallocated_rewards']:,}",
        f"Reward Runway: {_format_runway(status['reward_runway_seconds'])}",
        f"Users: {status['num_users']}",
    ]
    return "\n".join(lines)


def format_user_status(status: Dict[str, Any]) -> str:
    """Render user_status() as plain text."""
    if not status['exists']:
        return f"User {status['user']}: no position"

    lines = [
        f"USER {status['user']}",
        "-" * 30,
        f"Phase: {status['phase']}",
        f"Staked: {status['stake_amount']:,} (since {_format_time(status['staked_at'])})",
        f"Captured Reward: {status['captured_reward']:,}",
        f"Uncaptured Reward: {status['uncaptured_reward']:,}",
        f"Total Reward: {status['total_reward']:,}",
        f"Wallet Balance: {status['wallet_balance']:,}",
        f"Escrow Balance: {status['escrow_balance']:,}",
    ]
    if status['withdrawal_request_amount'] or status['withdrawal_request_reward_amount']:
        ready = "ready" if status['withdrawal_ready'] else "locked"
        lines.extend([
            f"Pending Principal: {status['withdrawal_request_amount']:,}",
            f"Pending Reward: {status['withdrawal_request_reward_amount']:,}",
            f"Requested At: {_format_time(status['withdrawal_request_time'])}",
            f"Unlocks At: {_format_time(status['withdrawal_unlocks_at'])} ({ready})",
        ])
    return "\n".join(lines)
