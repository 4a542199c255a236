"""Staking records and pool state."""
from decimal import Decimal
from fractions import Fraction
from typing import Annotated, Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, PlainValidator


def _to_fraction(value: Any) -> Fraction:
    if isinstance(value, Fraction):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        # Floats are rejected so point values stay exact
        raise ValueError(f"expected an exact rational value, got {value!r}")
    if isinstance(value, (int, str, Decimal)):
        return Fraction(value)
    raise ValueError(f"cannot interpret {value!r} as a rational value")


Rational = Annotated[
    Fraction,
    PlainValidator(_to_fraction),
    PlainSerializer(str, return_type=str, when_used="json"),
]


class StakingEntry(BaseModel):
    """A participant's stake for the current lock cycle."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    amount: int = Field(gt=0)
    start_time: int = Field(ge=0)
    lockup_duration: int = Field(ge=0)
    lockup_months: int = Field(ge=1)
    weight: Rational
    claimed: bool = False
    memo: Optional[str] = None

    @property
    def points(self) -> Fraction:
        return self.amount * self.weight

    @property
    def unlocks_at(self) -> int:
        return self.start_time + self.lockup_duration

    def is_unlocked(self, now: int) -> bool:
        return now >= self.unlocks_at


class RewardPoolState(BaseModel):
    """Distributable balance and the weighted point totals behind it."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    reward_pool: int = Field(default=0, ge=0)
    # Principal held for participants, separate from the distributable pool
    total_staked: int = Field(default=0, ge=0)
    total_staked_points: Rational = Fraction(0)
    # Points of entries that were already paid for their current lock cycle
    claimed_points: Rational = Fraction(0)

    @property
    def claimable_points(self) -> Fraction:
        return self.total_staked_points - self.claimed_points


class StakingState(BaseModel):
    """Everything the ledger persists: one pool record plus one entry per participant."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    owner_id: str
    funding_source_id: str
    pool: RewardPoolState = Field(default_factory=RewardPoolState)
    entries: Dict[str, StakingEntry] = Field(default_factory=dict)
