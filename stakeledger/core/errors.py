"""Errors raised by the staking engine."""


class StakingError(Exception):
    """Base class for every rejected staking operation."""


class NotInitializedError(StakingError):
    pass


class AlreadyInitializedError(StakingError):
    pass


class UnauthorizedError(StakingError):
    pass


class InvalidAmountError(StakingError, ValueError):
    pass


class LockupTierMismatchError(StakingError, ValueError):
    pass


class NoStakeError(StakingError, LookupError):
    pass


class LockupActiveError(StakingError):
    pass


class AlreadyClaimedError(StakingError):
    pass


class InsufficientPoolBalanceError(StakingError):
    pass


class PayoutInProgressError(StakingError):
    pass


class InvariantViolationError(StakingError):
    pass


class StateLoadError(StakingError):
    pass
