"""Participant stake ledger."""
from fractions import Fraction
from typing import Dict, Iterator, Optional, Tuple

from .errors import InvalidAmountError
from .stake import StakingEntry


class StakeLedger:
    """Mapping of participant id to their :class:`StakingEntry`.

    The ledger only stores entries; point totals live in the reward pool and
    are adjusted by the service alongside every ledger mutation.
    """

    def __init__(self, entries: Dict[str, StakingEntry]):
        self._entries = entries

    def get(self, account_id: str) -> Optional[StakingEntry]:
        return self._entries.get(account_id)

    def upsert(self, account_id: str, entry: StakingEntry) -> None:
        if entry.amount <= 0:
            raise InvalidAmountError(f"Entry for {account_id} must hold a positive amount")
        self._entries[account_id] = entry

    def remove(self, account_id: str) -> Optional[StakingEntry]:
        return self._entries.pop(account_id, None)

    def __contains__(self, account_id: str) -> bool:
        return account_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def items(self) -> Iterator[Tuple[str, StakingEntry]]:
        return iter(list(self._entries.items()))

    def recompute_points(self) -> Fraction:
        """Sum of weighted points over every entry."""
        return sum((entry.points for entry in self._entries.values()), Fraction(0))

    def recompute_claimed_points(self) -> Fraction:
        """Sum of weighted points over entries already paid this lock cycle."""
        return sum((entry.points for entry in self._entries.values() if entry.claimed), Fraction(0))

    def recompute_principal(self) -> int:
        return sum(entry.amount for entry in self._entries.values())
