"""Reward pool balance and weighted point totals."""
from fractions import Fraction
from typing import Callable, Optional
from loguru import logger

from .errors import (
    InsufficientPoolBalanceError,
    InvalidAmountError,
    InvariantViolationError,
    UnauthorizedError,
)
from .stake import RewardPoolState
from .transfer import TransferGateway, TransferKind, TransferTicket, submit_transfer


class RewardPool:
    """Distributable balance plus the running point totals behind it.

    Args:
        state: Persisted pool record, mutated in place
        account_id: Account holding the pool's funds
        owner_id: The only account allowed to fund the pool
    """

    def __init__(self, state: RewardPoolState, account_id: str, owner_id: str):
        self.state = state
        self.account_id = account_id
        self.owner_id = owner_id

    def balance(self) -> int:
        return self.state.reward_pool

    def total_staked(self) -> int:
        return self.state.total_staked

    def total_points(self) -> Fraction:
        return self.state.total_staked_points

    def claimable_points(self) -> Fraction:
        return self.state.claimable_points

    def credit(self, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmountError(f"Credit amount must be positive, got {amount}")
        self.state.reward_pool += amount

    def ensure_available(self, amount: int) -> None:
        if amount > self.state.reward_pool:
            raise InsufficientPoolBalanceError(
                f"Not enough tokens in reward pool: requested {amount}, available {self.state.reward_pool}"
            )

    def debit(self, amount: int) -> None:
        if amount < 0:
            raise InvalidAmountError(f"Debit amount must not be negative, got {amount}")
        self.ensure_available(amount)
        self.state.reward_pool -= amount

    def add_principal(self, amount: int) -> None:
        self.state.total_staked += amount

    def remove_principal(self, amount: int) -> None:
        if amount > self.state.total_staked:
            raise InvariantViolationError(
                f"Cannot remove {amount} principal from a total of {self.state.total_staked}"
            )
        self.state.total_staked -= amount

    def add_points(self, points: Fraction) -> None:
        self.state.total_staked_points += points

    def remove_points(self, points: Fraction) -> None:
        if points > self.state.total_staked_points:
            raise InvariantViolationError(
                f"Cannot remove {points} points from a total of {self.state.total_staked_points}"
            )
        self.state.total_staked_points -= points

    def mark_claimed(self, points: Fraction) -> None:
        self.state.claimed_points += points

    def unmark_claimed(self, points: Fraction) -> None:
        if points > self.state.claimed_points:
            raise InvariantViolationError(
                f"Cannot release {points} claimed points from a total of {self.state.claimed_points}"
            )
        self.state.claimed_points -= points

    def fund(self,
             caller: str,
             amount: int,
             source: str,
             gateway: TransferGateway,
             on_settled: Optional[Callable[[TransferTicket], None]] = None) -> TransferTicket:
        """Move ``amount`` from ``source`` into the pool.

        The balance is credited only once the gateway confirms the transfer;
        a failed transfer leaves it unchanged and must be re-issued by the
        caller.

        Raises:
            UnauthorizedError: caller is not the pool owner
            InvalidAmountError: amount is not positive
        """
        if caller != self.owner_id:
            raise UnauthorizedError(f"Only {self.owner_id} can fund the reward pool")
        if amount <= 0:
            raise InvalidAmountError(f"Funding amount must be positive, got {amount}")

        ticket = TransferTicket(kind=TransferKind.FUNDING, account_id=caller, amount=amount)
        logger.debug(f"Requesting funding transfer {ticket.ticket_id} of {amount} from {source}")

        def _credit() -> None:
            self.credit(amount)
            logger.info(f"Reward pool funded with {amount}; balance is now {self.state.reward_pool}")

        return submit_transfer(
            gateway,
            ticket,
            sender=source,
            receiver=self.account_id,
            on_success=_credit,
            on_settled=on_settled,
        )
