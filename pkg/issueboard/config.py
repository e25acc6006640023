# Issue board configuration
# Values come from issueboard.yaml, then environment variables override them.

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).resolve().parents[2] / "issueboard.yaml"

ENV_OVERRIDES = {
    "ISSUEBOARD_URL": "backend_url",
    "ISSUEBOARD_ANON_KEY": "anon_key",
    "ISSUEBOARD_API_SECRET": "api_secret",
}


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


@dataclass
class Config:
    """Runtime configuration for the board client and server."""

    # Hosted backend
    backend_url: str = ""
    anon_key: str = ""
    request_timeout: float = 10.0

    # Board server
    api_secret: str = ""
    log_level: str = "INFO"

    def validate(self) -> "Config":
        missing = [name for name in ("backend_url", "anon_key") if not getattr(self, name)]
        if missing:
            raise ConfigError(
                f"Missing config: {', '.join(missing)}. "
                f"Set them in {CONFIG_PATH.name} or via "
                f"{', '.join(k for k, v in ENV_OVERRIDES.items() if v in missing)}"
            )
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")
        return self

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML, falling back to defaults, then apply env overrides."""
        env_path = os.environ.get("ISSUEBOARD_CONFIG")
        cfg_path = Path(path) if path else Path(env_path) if env_path else CONFIG_PATH
        known = {f.name for f in fields(cls)}
        cfg = cls()
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if k in known})
            except (OSError, yaml.YAMLError, TypeError, AttributeError) as e:
                logger.warning(f"Ignoring unreadable config {cfg_path}: {e}")
                cfg = cls()

        for env_name, attr in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                setattr(cfg, attr, value)
        cfg.request_timeout = float(cfg.request_timeout)
        return cfg
