# Teamboard — configuration
# Override defaults via config.yaml (or $TEAMBOARD_CONFIG) and environment.

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).parent / "config.yaml"


@dataclass
class Config:
    """Runtime configuration shared by the server and the CLI."""

    # Storage
    db_path: str = "~/.local/share/teamboard/teamboard.db"

    # Server
    host: str = "127.0.0.1"
    port: int = 3000
    search_limit: int = 50
    log_level: str = "INFO"

    # Client
    api_url: str = "http://127.0.0.1:3000"
    api_token: str = ""
    request_timeout: float = 10.0

    def apply_env(self):
        """Environment variables win over file values."""
        if os.environ.get("TEAMBOARD_DB"):
            self.db_path = os.environ["TEAMBOARD_DB"]
        if os.environ.get("TEAMBOARD_URL"):
            self.api_url = os.environ["TEAMBOARD_URL"]
        if os.environ.get("TEAMBOARD_TOKEN"):
            self.api_token = os.environ["TEAMBOARD_TOKEN"]
        self.db_path = str(Path(self.db_path).expanduser())

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path or os.environ.get("TEAMBOARD_CONFIG") or CONFIG_PATH)
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if hasattr(cls, k)})
            except (OSError, TypeError, AttributeError, yaml.YAMLError) as e:
                logger.warning(f"Ignoring unreadable config {cfg_path}: {e}")
                cfg = cls()
        else:
            cfg = cls()
        cfg.apply_env()
        return cfg
