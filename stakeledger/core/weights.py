"""Lock-duration tiers and their point multipliers."""
from fractions import Fraction
from typing import List, Tuple

SECONDS_PER_DAY = 24 * 60 * 60
DEFAULT_SECONDS_PER_MONTH = 30 * SECONDS_PER_DAY

# (lowest month count of the tier, multiplier), ascending
WEIGHT_TIERS: List[Tuple[int, Fraction]] = [
    (1, Fraction(1)),
    (4, Fraction(3, 2)),
    (7, Fraction(2)),
    (10, Fraction(5, 2)),
]


def weight_for_months(months: int) -> Fraction:
    """Return the point multiplier for a lock of ``months`` whole months.

    1-3 months -> 1, 4-6 -> 1.5, 7-9 -> 2, 10 and above -> 2.5. Anything
    below one month falls into the lowest tier.
    """
    weight = WEIGHT_TIERS[0][1]
    for floor, multiplier in WEIGHT_TIERS:
        if months >= floor:
            weight = multiplier
    return weight


def months_to_seconds(months: int, seconds_per_month: int = DEFAULT_SECONDS_PER_MONTH) -> int:
    """Convert a month tier into a lock duration in seconds."""
    return months * seconds_per_month
