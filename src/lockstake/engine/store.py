"""Keyed storage for user positions."""

from typing import Dict, Iterator, Optional

from .state import UserPosition


class PositionStore:
    """Mapping from user identity to UserPosition with get-or-create semantics."""

    def __init__(self):
        self._positions: Dict[str, UserPosition] = {}

    def get(self, user: str) -> Optional[UserPosition]:
        return self._positions.get(user)

    def get_or_create(self, user: str) -> tuple[UserPosition, bool]:
        """
        Fetch a position, creating an empty one if missing.

        The new record is not stored until `put` is called, so a failed
        operation leaves no trace.

        Returns:
            (position, created)
        """
        existing = self._positions.get(user)
        if existing is not None:
            return existing, False
        return UserPosition(user=user), True

    def put(self, position: UserPosition) -> None:
        self._positions[position.user] = position

    def __contains__(self, user: str) -> bool:
        return user in self._positions

    def __iter__(self) -> Iterator[UserPosition]:
        return iter(list(self._positions.values()))

    def __len__(self) -> int:
        return len(self._positions)

    def users(self) -> list[str]:
        return list(self._positions.keys())

    def total_stake(self) -> int:
        return sum(p.stake_amount for p in self._positions.values())
