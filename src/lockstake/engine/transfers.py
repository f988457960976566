"""Asset transfer collaborator - accounts, authorization capabilities and an in-memory ledger.

The core never moves balances itself. It asks a TransferService to move the
single staking asset between accounts and passes an explicit authority that
says on whose behalf the transfer is signed:

- owner(identity): the identity's own wallet (user staking, admin funding)
- user_escrow(identity): the per-user escrow that holds staked principal
- treasury(): the protocol reserve that pays rewards
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

WALLET = "wallet"
ESCROW = "escrow"
TREASURY = "treasury"

OWNER_AUTHORITY = "owner"
ESCROW_AUTHORITY = "user_escrow"
TREASURY_AUTHORITY = "treasury"


@dataclass(frozen=True)
class Account:
    """Address of a balance holder."""
    kind: str  # wallet, escrow or treasury
    identity: Optional[str] = None

    @classmethod
    def wallet(cls, identity: str) -> "Account":
        return cls(WALLET, identity)

    @classmethod
    def escrow(cls, identity: str) -> "Account":
        return cls(ESCROW, identity)

    @classmethod
    def treasury(cls) -> "Account":
        return cls(TREASURY, None)

    def __str__(self) -> str:
        if self.identity is None:
            return self.kind
        return f"{self.kind}:{self.identity}"


@dataclass(frozen=True)
class TransferAuthority:
    """Capability under which a transfer is signed."""
    kind: str
    identity: Optional[str] = None

    @classmethod
    def owner(cls, identity: str) -> "TransferAuthority":
        return cls(OWNER_AUTHORITY, identity)

    @classmethod
    def user_escrow(cls, identity: str) -> "TransferAuthority":
        return cls(ESCROW_AUTHORITY, identity)

    @classmethod
    def treasury(cls) -> "TransferAuthority":
        return cls(TREASURY_AUTHORITY, None)

    def can_debit(self, account: Account) -> bool:
        """Whether this capability may move funds out of `account`."""
        if account.kind == WALLET:
            return self.kind == OWNER_AUTHORITY and self.identity == account.identity
        if account.kind == ESCROW:
            return self.kind == ESCROW_AUTHORITY and self.identity == account.identity
        if account.kind == TREASURY:
            return self.kind == TREASURY_AUTHORITY
        return False


@dataclass(frozen=True)
class Transfer:
    """One leg of an operation's asset movement."""
    source: Account
    destination: Account
    authority: TransferAuthority
    amount: int

    def reversed(self) -> "Transfer":
        """The compensating leg, signed by whoever controls the destination."""
        return Transfer(
            source=self.destination,
            destination=self.source,
            authority=authority_for(self.destination),
            amount=self.amount,
        )


def authority_for(account: Account) -> TransferAuthority:
    """Capability that controls `account`."""
    if account.kind == WALLET:
        return TransferAuthority.owner(account.identity)
    if account.kind == ESCROW:
        return TransferAuthority.user_escrow(account.identity)
    return TransferAuthority.treasury()


class TransferService(Protocol):
    """What the engine needs from the host ledger."""

    def transfer(
        self,
        source: Account,
        destination: Account,
        authority: TransferAuthority,
        amount: int,
    ) -> bool:
        ...

    def balance_of(self, account: Account) -> int:
        ...


@dataclass
class InMemoryTokenLedger:
    """Single-asset balance book implementing TransferService.

    A transfer either fully applies or returns False with no effect.
    """
    asset_id: str = "STAKE"
    balances: Dict[Account, int] = field(default_factory=dict)
    journal: List[Transfer] = field(default_factory=list)

    def balance_of(self, account: Account) -> int:
        return self.balances.get(account, 0)

    def mint(self, account: Account, amount: int) -> None:
        """Credit `account` out of thin air (test and simulation funding)."""
        if amount < 0:
            raise ValueError(f"Cannot mint a negative amount: {amount}")
        self.balances[account] = self.balance_of(account) + amount

    def transfer(
        self,
        source: Account,
        destination: Account,
        authority: TransferAuthority,
        amount: int,
    ) -> bool:
        if amount <= 0:
            logger.debug("Rejected transfer of non-positive amount %s", amount)
            return False
        if not authority.can_debit(source):
            logger.warning("Authority %s cannot debit %s", authority, source)
            return False
        available = self.balance_of(source)
        if available < amount:
            logger.debug("Insufficient balance in %s: %s < %s", source, available, amount)
            return False

        self.balances[source] = available - amount
        self.balances[destination] = self.balance_of(destination) + amount
        self.journal.append(Transfer(source, destination, authority, amount))
        return True

    def total_supply(self) -> int:
        return sum(self.balances.values())
