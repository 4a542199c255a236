"""Staking ledger engine."""
from .config import StakingConfig, get_data_dir, load_config, save_config
from .errors import StakingError
from .ledger import StakeLedger
from .pool import RewardPool
from .rewards import RewardCalculator
from .service import StakingService
from .stake import RewardPoolState, StakingEntry, StakingState
from .store import StateStore
from .transfer import (
    DeferredTransferGateway,
    InMemoryTransferGateway,
    NearCliTransferGateway,
    TransferGateway,
    TransferTicket,
)
from .weights import weight_for_months

__all__ = [
    "StakingConfig",
    "get_data_dir",
    "load_config",
    "save_config",
    "StakingError",
    "StakeLedger",
    "RewardPool",
    "RewardCalculator",
    "StakingService",
    "RewardPoolState",
    "StakingEntry",
    "StakingState",
    "StateStore",
    "DeferredTransferGateway",
    "InMemoryTransferGateway",
    "NearCliTransferGateway",
    "TransferGateway",
    "TransferTicket",
    "weight_for_months",
]
