"""
boardsync configuration.

Defaults live on the Config dataclass; a YAML file overrides them and
BOARDSYNC_* environment variables override the file.
"""
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

import yaml

from .demo import DEFAULT_COLUMNS
from .errors import ConfigError

CONFIG_PATH = Path("boardsync.yaml")

ENV_OVERRIDES = {
    "BOARDSYNC_DB": "db_path",
    "BOARDSYNC_BOARD_ID": "board_id",
    "BOARDSYNC_API_URL": "api_url",
    "BOARDSYNC_API_SECRET": "api_secret",
}


@dataclass
class Config:
    """Runtime configuration for the store, server and client."""

    # Storage
    db_path: str = "~/.local/share/boardsync/boards.db"
    board_id: str = "default"
    position_spacing: int = 100
    default_columns: List[Tuple[str, str]] = field(default_factory=lambda: list(DEFAULT_COLUMNS))
    seed_demo: bool = False

    # HTTP
    api_url: str = "http://127.0.0.1:3000"
    api_secret: str = ""
    request_timeout: float = 5.0

    # Local render cache (empty = disabled)
    snapshot_path: str = ""

    log_level: str = "INFO"

    def validate(self) -> "Config":
        """Normalize values; raise ConfigError on anything unusable."""
        if not isinstance(self.position_spacing, int) or self.position_spacing <= 0:
            raise ConfigError(f"position_spacing must be a positive integer, got {self.position_spacing!r}")
        if not self.default_columns:
            raise ConfigError("default_columns must list at least one column")
        columns = []
        for entry in self.default_columns:
            if isinstance(entry, dict):
                entry = (entry.get("id"), entry.get("title") or entry.get("id"))
            try:
                column_id, title = entry
            except (TypeError, ValueError):
                raise ConfigError(f"Invalid column entry: {entry!r}")
            if not column_id:
                raise ConfigError(f"Column entry without id: {entry!r}")
            columns.append((str(column_id), str(title)))
        ids = [c[0] for c in columns]
        if len(set(ids)) != len(ids):
            raise ConfigError(f"Duplicate column ids in default_columns: {ids}")
        self.default_columns = columns
        if self.request_timeout <= 0:
            raise ConfigError(f"request_timeout must be positive, got {self.request_timeout!r}")
        self.db_path = str(Path(self.db_path).expanduser())
        if self.snapshot_path:
            self.snapshot_path = str(Path(self.snapshot_path).expanduser())
        return self

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML, apply env overrides, validate."""
        cfg_path = Path(path) if path else CONFIG_PATH
        data = {}
        if cfg_path.exists():
            with open(cfg_path) as f:
                try:
                    data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigError(f"Cannot parse {cfg_path}: {e}")
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping")
        elif path:
            raise ConfigError(f"Config file not found: {cfg_path}")
        cfg = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
        for env_name, attr in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                setattr(cfg, attr, value)
        return cfg.validate()


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [boardsync] %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
