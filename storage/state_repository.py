import os
import json
import tempfile
from typing import Any, Dict, Optional
import logging

import numpy as np

from utils.logging_utils import get_component_logger, log_exception

DEFAULT_LOGGER = get_component_logger("storage.state_repository")

DEFAULT_FILES = {
    'price_history': 'price_history.json',
    'htf_history': 'htf_history.json',
    'cycle_history': 'cycle_history.json',
    'market_leader_history': 'market_leader_history.json',
    'api_cache': 'api_cache.json',
    'analysis': 'analysis.json'
}


def convert_to_native(obj: Any) -> Any:
    """JSON fallback for NumPy scalars and arrays."""
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class StateRepository:
    """
    Repository for the engine's persisted state: price history, channel
    histories, the response cache and the last published analysis.

    Every state document is one JSON file in ``state_dir``.
    """

    def __init__(self,
                 state_dir: Optional[str] = None,
                 files: Optional[Dict[str, str]] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the repository.

        Args:
            state_dir: Directory holding the state files (relative paths are
                resolved against the project root)
            files: Mapping of state name -> file name
            logger: Optional logger instance
        """
        self.logger = logger or DEFAULT_LOGGER

        state_dir = state_dir or "state"
        if not os.path.isabs(state_dir):
            root_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
            state_dir = os.path.join(root_dir, state_dir)
        self.state_dir = state_dir

        self.files = dict(DEFAULT_FILES)
        self.files.update(files or {})

        os.makedirs(self.state_dir, exist_ok=True)

    @classmethod
    def from_config(cls, config: Dict, logger: Optional[logging.Logger] = None) -> 'StateRepository':
        storage = config.get('storage', {})
        return cls(storage.get('state_dir'), storage.get('files'), logger)

    def path(self, name: str) -> str:
        """File path of a state document."""
        filename = self.files.get(name, f"{name}.json")
        return os.path.join(self.state_dir, filename)

    def load(self, name: str, default: Any = None) -> Any:
        """
        Load a state document.

        Missing and unreadable files both yield the default; the latter is
        logged.

        Args:
            name: State name, e.g. "price_history"
            default: Value returned when nothing usable is stored

        Returns:
            The decoded JSON document or the default
        """
        path = self.path(name)
        if not os.path.exists(path):
            self.logger.debug(f"No stored {name} at {path}")
            return default

        try:
            with open(path, 'r') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(f"Error loading {name} from {path}: {str(e)}")
            return default

    def save(self, name: str, data: Any) -> bool:
        """
        Write a state document atomically (temporary file, then rename).

        Returns:
            True on success; failures are logged, not raised
        """
        path = self.path(name)
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=self.state_dir)
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2, default=convert_to_native)
            os.replace(tmp_path, path)
            return True
        except (OSError, TypeError, ValueError) as e:
            log_exception(self.logger, e, f"Error saving {name} to {path}:")
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            return False
