"""Ledger events - append-only record of committed operations."""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterator, List, Optional, Type, TypeVar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerEvent:
    """Base event; every event carries the commit timestamp."""
    timestamp: int

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class Initialized(LedgerEvent):
    administrator: str
    asset_id: str
    withdrawal_delay_seconds: int
    reward_rate_yearly_percentage_numerator: int


@dataclass(frozen=True)
class RewardsAdded(LedgerEvent):
    administrator: str
    amount: int
    total_reward_provided: int


@dataclass(frozen=True)
class RewardRatioConfigured(LedgerEvent):
    administrator: str
    new_reward_rate_yearly_percentage_numerator: int
    old_reward_rate_per_second_per_token_numerator: int
    new_reward_rate_per_second_per_token_numerator: int


@dataclass(frozen=True)
class WithdrawalDelayConfigured(LedgerEvent):
    administrator: str
    old_withdrawal_delay_seconds: int
    new_withdrawal_delay_seconds: int


@dataclass(frozen=True)
class OwnershipTransferInitiated(LedgerEvent):
    current_administrator: str
    new_administrator: str


@dataclass(frozen=True)
class OwnershipTransferFinalized(LedgerEvent):
    old_administrator: str
    new_administrator: str


@dataclass(frozen=True)
class Staked(LedgerEvent):
    user: str
    amount: int
    total_user_staked: int
    captured_reward: int


@dataclass(frozen=True)
class WithdrawalRequested(LedgerEvent):
    user: str
    added_token_amount: int
    total_token_amount: int
    added_reward_amount: int
    total_reward_amount: int
    withdrawal_request_time: int


@dataclass(frozen=True)
class Withdrawn(LedgerEvent):
    user: str
    token_amount: int
    reward_amount: int


@dataclass(frozen=True)
class WithdrawnAndForfeitedRewards(LedgerEvent):
    user: str
    token_amount: int
    forfeited_reward_amount: int


E = TypeVar("E", bound=LedgerEvent)


class EventLog:
    """Append-only event sink. Not read back by the engine."""

    def __init__(self, events: Optional[List[LedgerEvent]] = None):
        self._events: List[LedgerEvent] = list(events or [])

    def emit(self, event: LedgerEvent) -> None:
        self._events.append(event)
        logger.info("%s %s", event.name, _fields(event))

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[LedgerEvent]:
        return iter(self._events)

    @property
    def last(self) -> Optional[LedgerEvent]:
        return self._events[-1] if self._events else None

    def of_type(self, event_type: Type[E]) -> List[E]:
        return [e for e in self._events if isinstance(e, event_type)]

    def to_records(self) -> List[Dict[str, Any]]:
        """Flatten events into dict rows with an 'event' column."""
        return [{'event': e.name, **asdict(e)} for e in self._events]


def _fields(event: LedgerEvent) -> str:
    return " ".join(f"{k}={v}" for k, v in asdict(event).items())
