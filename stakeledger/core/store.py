"""JSON persistence for the staking state."""
import os
import json
from pathlib import Path
from typing import Optional
from loguru import logger
from pydantic import ValidationError

from .config import get_data_dir
from .errors import StateLoadError
from .stake import StakingState

STATE_FILE = "state.json"


class StateStore:
    """Stores one pool record plus one entry per participant in a JSON file."""

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir) if data_dir else get_data_dir()
        self.path = self.data_dir / STATE_FILE

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[StakingState]:
        """Load the saved state, or None when nothing was saved yet."""
        if not self.path.exists():
            return None
        try:
            with open(self.path) as f:
                data = json.load(f)
            return StakingState.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise StateLoadError(f"Staking state in {self.path} is unreadable: {e}") from e

    def save(self, state: StakingState) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".json.tmp")
        with open(tmp_path, 'w') as f:
            f.write(state.model_dump_json(indent=2))
        # Replace in one step so a crash never leaves a half-written state
        os.replace(tmp_path, self.path)
        logger.debug(f"Saved staking state to {self.path}")
