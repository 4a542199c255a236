"""Configuration for the staking ledger."""
import os
import json
import platform
from pathlib import Path
from typing import Optional
from loguru import logger
from pydantic import BaseModel, Field

from .weights import DEFAULT_SECONDS_PER_MONTH

CONFIG_FILE = "config.json"


class StakingConfig(BaseModel):
    """Ledger and transport settings."""
    default_lockup_months: int = Field(default=1, ge=1)
    seconds_per_month: int = Field(default=DEFAULT_SECONDS_PER_MONTH, gt=0)
    restake_resets_lock: bool = True  # False keeps the original start_time on restake
    pool_account: str = "stake-ledger.testnet"
    network: str = "testnet"
    near_binary: str = "near"

    def __init__(self, **data):
        super().__init__(**data)
        # Keep the pool account on the configured network's suffix
        if self.network == "mainnet" and self.pool_account.endswith(".testnet"):
            self.pool_account = self.pool_account[: -len(".testnet")] + ".near"

    @property
    def default_lockup_seconds(self) -> int:
        return self.default_lockup_months * self.seconds_per_month


def get_data_dir() -> Path:
    """Get the platform-specific data directory."""
    override = os.getenv("STAKE_LEDGER_HOME")
    if override:
        return Path(override)
    if os.name == 'nt':  # Windows
        return Path(os.getenv('APPDATA')) / 'stake-ledger'
    elif platform.system() == 'Darwin':  # macOS
        return Path.home() / 'Library' / 'Application Support' / 'stake-ledger'
    else:  # Linux and others
        return Path.home() / '.config' / 'stake-ledger'


def load_config(data_dir: Optional[Path] = None) -> StakingConfig:
    """Load configuration from disk, falling back to defaults."""
    config_path = (data_dir or get_data_dir()) / CONFIG_FILE
    if config_path.exists():
        try:
            with open(config_path) as f:
                return StakingConfig(**json.load(f))
        except Exception as e:
            logger.error(f"Failed to load config, using defaults: {e}")
    return StakingConfig()


def save_config(config: StakingConfig, data_dir: Optional[Path] = None) -> Path:
    """Save configuration to disk."""
    data_dir = data_dir or get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    config_path = data_dir / CONFIG_FILE
    with open(config_path, 'w') as f:
        json.dump(config.model_dump(), f, indent=2)
    return config_path
