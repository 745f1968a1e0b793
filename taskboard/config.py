# Taskboard client: configuration
# Override the backend URL and local paths via config/taskboard.yaml or env vars.

import os
import yaml
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigError

CONFIG_PATH = Path(__file__).parent.parent / "config" / "taskboard.yaml"


@dataclass
class ClientConfig:
    """Runtime configuration for the board client."""

    # Backend
    api_url: str = "http://localhost:5000/api"
    request_timeout: float = 10.0

    # Local state (token, user, chat transcript)
    state_db: str = "~/.local/share/taskboard/state.db"

    # Behavior
    search_limit: int = 5
    log_level: str = "INFO"

    def resolve(self):
        """Apply environment overrides and expand ~ in paths."""
        self.api_url = os.environ.get("TASKBOARD_API_URL", self.api_url).rstrip("/")
        self.state_db = os.environ.get("TASKBOARD_STATE_DB", self.state_db)
        self.state_db = str(Path(self.state_db).expanduser())

    @classmethod
    def from_dict(cls, data: dict) -> "ClientConfig":
        return cls(**{k: v for k, v in (data or {}).items() if hasattr(cls, k)})

    @classmethod
    def load(cls, path: Optional[str] = None) -> "ClientConfig":
        """Load the `client` section from YAML, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Cannot parse {cfg_path}: {e}") from e
            cfg = cls.from_dict(raw.get("client", {}))
        else:
            cfg = cls()
        cfg.resolve()
        return cfg
