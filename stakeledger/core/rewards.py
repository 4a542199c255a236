"""Proportional reward computation."""
from fractions import Fraction

from .pool import RewardPool
from .stake import StakingEntry


class RewardCalculator:
    """Computes a participant's share of the reward pool.

    ``reward = floor(balance * entry_points / claimable_points)``

    Entries that were already paid this lock cycle are excluded from the
    denominator, so every claim consumes its share of the pool and the
    remaining claimants keep their proportions. All arithmetic is exact;
    the only rounding is the final floor.
    """

    def __init__(self, pool: RewardPool, reserved_balance: int = 0, reserved_points: Fraction = Fraction(0)):
        self.pool = pool
        # Payouts submitted but not yet confirmed
        self.reserved_balance = reserved_balance
        self.reserved_points = reserved_points

    def reward(self, entry: StakingEntry) -> int:
        claimable = self.pool.claimable_points() - self.reserved_points
        if claimable <= 0:
            return 0
        share = Fraction(self.pool.balance() - self.reserved_balance) * entry.points / claimable
        return int(share // 1)

    def preview(self, entry: StakingEntry, now: int) -> int:
        """Reward the entry could claim at ``now``; 0 while locked or already claimed."""
        if not entry.is_unlocked(now) or entry.claimed:
            return 0
        return self.reward(entry)
