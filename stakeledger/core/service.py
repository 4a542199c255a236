"""Staking operations: initialize, fund, stake, claim and unstake."""
import time
from fractions import Fraction
from typing import Callable, Dict, Optional, Set, Tuple
from loguru import logger

from .config import StakingConfig
from .errors import (
    AlreadyClaimedError,
    AlreadyInitializedError,
    InvalidAmountError,
    InvariantViolationError,
    LockupActiveError,
    LockupTierMismatchError,
    NoStakeError,
    NotInitializedError,
    PayoutInProgressError,
)
from .ledger import StakeLedger
from .pool import RewardPool
from .rewards import RewardCalculator
from .stake import RewardPoolState, StakingEntry, StakingState
from .store import StateStore
from .transfer import TransferGateway, TransferKind, TransferStatus, TransferTicket, submit_transfer
from .weights import months_to_seconds, weight_for_months

Clock = Callable[[], int]


def system_clock() -> int:
    return int(time.time())


class StakingService:
    """Runs staking operations against a single ledger and reward pool.

    Operations are expected to be issued one at a time. Transfers are the
    only suspension points: state that depends on a transfer is changed in
    its completion callback, never before.
    """

    def __init__(self,
                 gateway: TransferGateway,
                 config: Optional[StakingConfig] = None,
                 clock: Optional[Clock] = None,
                 store: Optional[StateStore] = None):
        self.gateway = gateway
        self.config = config or StakingConfig()
        self.clock = clock or system_clock
        self.store = store
        self.state: Optional[StakingState] = store.load() if store else None
        self._payouts_in_flight: Set[str] = set()
        # Reward payouts submitted but not yet settled: account -> (amount, points)
        self._reserved: Dict[str, Tuple[int, Fraction]] = {}

    # Lifecycle

    def initialize(self, owner_id: str, funding_source_id: str, opening_balance: int = 0) -> StakingState:
        """Create the pool and an empty ledger. Allowed exactly once."""
        if self.state is not None:
            raise AlreadyInitializedError("Staking state is already initialized")
        if opening_balance < 0:
            raise InvalidAmountError(f"Opening balance must not be negative, got {opening_balance}")
        self.state = StakingState(
            owner_id=owner_id,
            funding_source_id=funding_source_id,
            pool=RewardPoolState(reward_pool=opening_balance),
        )
        self._persist()
        logger.info(f"Initialized reward pool owned by {owner_id} with balance {opening_balance}")
        return self.state

    @property
    def initialized(self) -> bool:
        return self.state is not None

    def _require_state(self) -> StakingState:
        if self.state is None:
            raise NotInitializedError("Staking state is not initialized")
        return self.state

    @property
    def ledger(self) -> StakeLedger:
        return StakeLedger(self._require_state().entries)

    @property
    def pool(self) -> RewardPool:
        state = self._require_state()
        return RewardPool(state.pool, account_id=self.config.pool_account, owner_id=state.owner_id)

    @property
    def calculator(self) -> RewardCalculator:
        return RewardCalculator(
            self.pool,
            reserved_balance=sum(amount for amount, _ in self._reserved.values()),
            reserved_points=sum((points for _, points in self._reserved.values()), Fraction(0)),
        )

    def _persist(self, _ticket: Optional[TransferTicket] = None) -> None:
        if self.store and self.state is not None:
            self.store.save(self.state)

    def _require_no_payout(self, account_id: str) -> None:
        if account_id in self._payouts_in_flight:
            raise PayoutInProgressError(f"A payout for {account_id} is still pending")

    # Operations

    def fund_pool(self, caller: str, amount: int) -> TransferTicket:
        """Top up the reward pool from the funding source (owner only)."""
        state = self._require_state()
        return self.pool.fund(
            caller,
            amount,
            source=state.funding_source_id,
            gateway=self.gateway,
            on_settled=self._persist,
        )

    def stake(self,
              account_id: str,
              amount: int,
              lockup_months: Optional[int] = None,
              memo: Optional[str] = None) -> StakingEntry:
        """Create or top up ``account_id``'s stake.

        A top-up restarts the lock for the whole balance (unless
        ``restake_resets_lock`` is off) and keeps the entry's tier and weight.
        """
        self._require_state()
        if amount <= 0:
            raise InvalidAmountError(f"Stake amount must be positive, got {amount}")
        if lockup_months is not None and lockup_months < 1:
            raise InvalidAmountError(f"Lockup must be at least one month, got {lockup_months}")
        self._require_no_payout(account_id)

        ledger = self.ledger
        pool = self.pool
        now = self.clock()
        existing = ledger.get(account_id)

        if existing is None:
            months = lockup_months or self.config.default_lockup_months
            entry = StakingEntry(
                amount=amount,
                start_time=now,
                lockup_duration=months_to_seconds(months, self.config.seconds_per_month),
                lockup_months=months,
                weight=weight_for_months(months),
                claimed=False,
                memo=memo,
            )
            ledger.upsert(account_id, entry)
            pool.add_points(entry.points)
            pool.add_principal(amount)
        else:
            if lockup_months is not None and lockup_months != existing.lockup_months:
                raise LockupTierMismatchError(
                    f"{account_id} is staked for {existing.lockup_months} months; "
                    f"cannot top up with a {lockup_months}-month lock"
                )
            entry = existing.model_copy()
            entry.amount = existing.amount + amount
            if memo is not None:
                entry.memo = memo
            if self.config.restake_resets_lock:
                entry.start_time = now
                if existing.claimed:
                    # New lock cycle: the entry is eligible for a reward again
                    pool.unmark_claimed(existing.points)
                    entry.claimed = False
            elif existing.claimed:
                pool.mark_claimed(amount * existing.weight)
            ledger.upsert(account_id, entry)
            pool.add_points(amount * entry.weight)
            pool.add_principal(amount)

        self._persist()
        logger.info(f"{account_id} staked {amount}; total staked {entry.amount} "
                    f"locked until {entry.unlocks_at}")
        return entry

    def _unlocked_entry(self, account_id: str) -> StakingEntry:
        entry = self.ledger.get(account_id)
        if entry is None:
            raise NoStakeError(f"No staking found for {account_id}")
        if not entry.is_unlocked(self.clock()):
            raise LockupActiveError(f"Lock-up period for {account_id} ends at {entry.unlocks_at}")
        return entry

    def claim_rewards(self, account_id: str) -> TransferTicket:
        """Pay ``account_id`` its share of the pool for the current lock cycle."""
        self._require_state()
        self._require_no_payout(account_id)
        entry = self._unlocked_entry(account_id)
        if entry.claimed:
            raise AlreadyClaimedError(f"Rewards already claimed by {account_id}")

        pool = self.pool
        calculator = self.calculator
        reward = calculator.reward(entry)
        # Checked before the transfer so a confirmed payout can always be debited
        pool.ensure_available(reward + calculator.reserved_balance)

        ticket = TransferTicket(kind=TransferKind.REWARD, account_id=account_id, amount=reward)

        def _mark_claimed() -> None:
            if reward:
                pool.debit(reward)
            self.ledger.upsert(account_id, entry.model_copy(update={"claimed": True}))
            pool.mark_claimed(entry.points)
            logger.info(f"{account_id} claimed {reward} from the reward pool")

        if reward == 0:
            # Nothing to send; the cycle is still consumed
            _mark_claimed()
            ticket.status = TransferStatus.SUCCEEDED
            self._persist()
            return ticket

        self._reserved[account_id] = (reward, entry.points)
        return self._submit_payout(ticket, _mark_claimed, memo=entry.memo)

    def unstake(self, account_id: str) -> TransferTicket:
        """Return ``account_id``'s principal and remove the entry."""
        self._require_state()
        self._require_no_payout(account_id)
        entry = self._unlocked_entry(account_id)
        pool = self.pool

        ticket = TransferTicket(kind=TransferKind.PRINCIPAL, account_id=account_id, amount=entry.amount)

        def _remove() -> None:
            pool.remove_points(entry.points)
            pool.remove_principal(entry.amount)
            if entry.claimed:
                pool.unmark_claimed(entry.points)
            self.ledger.remove(account_id)
            logger.info(f"{account_id} unstaked {entry.amount}")

        return self._submit_payout(ticket, _remove, memo=entry.memo)

    def _submit_payout(self, ticket: TransferTicket, on_success: Callable[[], None],
                       memo: Optional[str] = None) -> TransferTicket:
        account_id = ticket.account_id
        self._payouts_in_flight.add(account_id)

        def _settled(settled: TransferTicket) -> None:
            self._payouts_in_flight.discard(account_id)
            self._reserved.pop(account_id, None)
            self._persist(settled)

        return submit_transfer(
            self.gateway,
            ticket,
            sender=self.config.pool_account,
            receiver=account_id,
            on_success=on_success,
            on_settled=_settled,
            memo=memo,
        )

    # Views

    def total_points(self) -> Fraction:
        return self.pool.total_points()

    def total_staked(self) -> int:
        """Principal currently staked across all participants."""
        return self.pool.total_staked()

    def pool_balance(self) -> int:
        return self.pool.balance()

    def entry_of(self, account_id: str) -> Optional[StakingEntry]:
        return self.ledger.get(account_id)

    def preview_reward(self, account_id: str) -> int:
        entry = self.ledger.get(account_id)
        if entry is None:
            raise NoStakeError(f"No staking found for {account_id}")
        return self.calculator.preview(entry, self.clock())

    def staked_amount_of(self, account_id: str) -> int:
        entry = self.ledger.get(account_id)
        return entry.amount if entry else 0

    def has_claimed(self, account_id: str) -> bool:
        entry = self.ledger.get(account_id)
        return entry.claimed if entry else False

    def lockup_period(self) -> int:
        """Default lockup in seconds."""
        return self.config.default_lockup_seconds

    def check_invariants(self) -> None:
        """Recompute principal and point totals from the ledger and compare with the pool."""
        ledger = self.ledger
        pool_state = self._require_state().pool
        if pool_state.reward_pool < 0:
            raise InvariantViolationError(f"Reward pool is negative: {pool_state.reward_pool}")
        for account_id, entry in ledger.items():
            if entry.amount <= 0:
                raise InvariantViolationError(f"Entry for {account_id} holds {entry.amount}")
        expected = ledger.recompute_points()
        if pool_state.total_staked_points != expected:
            raise InvariantViolationError(
                f"total_staked_points is {pool_state.total_staked_points}, ledger sums to {expected}"
            )
        expected_principal = ledger.recompute_principal()
        if pool_state.total_staked != expected_principal:
            raise InvariantViolationError(
                f"total_staked is {pool_state.total_staked}, ledger sums to {expected_principal}"
            )
        expected_claimed = ledger.recompute_claimed_points()
        if pool_state.claimed_points != expected_claimed:
            raise InvariantViolationError(
                f"claimed_points is {pool_state.claimed_points}, ledger sums to {expected_claimed}"
            )
