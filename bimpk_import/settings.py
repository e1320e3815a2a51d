"""Layered runtime configuration for the importer."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from bimpk_import.config import SHORT_NAME_LENGTH
from bimpk_import.locking import DEFAULT_LOCK_TIMEOUT

logger = logging.getLogger(__name__)

# All known configuration keys with defaults
_CONFIG_KEYS: dict[str, dict[str, Any]] = {
    "BIMPK_ENV": {"default": "development", "description": "Environment profile"},
    "BIMPK_LOG_LEVEL": {"default": "INFO", "description": "Logging level"},
    "BIMPK_STORE_DB": {"default": "bimpk_items.db", "description": "Item store database path"},
    "BIMPK_NAMESPACES": {"default": "", "description": "Comma-separated project namespaces"},
    "BIMPK_SHORT_NAME_LENGTH": {
        "default": str(SHORT_NAME_LENGTH),
        "description": "File-name characters used in collection short names",
    },
    "BIMPK_LOCK_DIR": {
        "default": ".bimpk/locks",
        "description": "Import lock directory (empty disables locking)",
    },
    "BIMPK_LOCK_TIMEOUT": {
        "default": str(DEFAULT_LOCK_TIMEOUT),
        "description": "Seconds before an import lock is considered stale",
    },
}

_PROFILES: dict[str, dict[str, str]] = {
    "development": {
        "BIMPK_ENV": "development",
        "BIMPK_LOG_LEVEL": "DEBUG",
    },
    "production": {
        "BIMPK_ENV": "production",
        "BIMPK_LOG_LEVEL": "WARNING",
    },
    "testing": {
        "BIMPK_ENV": "testing",
        "BIMPK_LOG_LEVEL": "DEBUG",
        "BIMPK_STORE_DB": ":memory:",
        "BIMPK_LOCK_DIR": "",
    },
}


class ImportSettings(BaseModel):
    """Resolved configuration for the importer."""

    env: str = "development"
    log_level: str = "INFO"
    store_db: str = "bimpk_items.db"
    namespaces: list[str] = Field(default_factory=list)
    short_name_length: int = SHORT_NAME_LENGTH
    lock_dir: str = ".bimpk/locks"
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT

    @classmethod
    def from_config(cls, config: dict[str, str]) -> ImportSettings:
        namespaces = [ns.strip() for ns in config["BIMPK_NAMESPACES"].split(",") if ns.strip()]
        return cls(
            env=config["BIMPK_ENV"],
            log_level=config["BIMPK_LOG_LEVEL"].upper(),
            store_db=config["BIMPK_STORE_DB"],
            namespaces=namespaces,
            short_name_length=int(config["BIMPK_SHORT_NAME_LENGTH"]),
            lock_dir=config["BIMPK_LOCK_DIR"],
            lock_timeout=float(config["BIMPK_LOCK_TIMEOUT"]),
        )


def load_config(project_path: str | Path | None = None) -> dict[str, str]:
    """Load merged config: defaults -> profile -> .bimpk/config.json -> env vars.

    Returns a flat dict of configuration values.
    """
    config: dict[str, str] = {}

    # 1. Defaults
    for key, info in _CONFIG_KEYS.items():
        config[key] = str(info["default"])

    # 2. Profile overrides
    env_name = os.environ.get("BIMPK_ENV", config["BIMPK_ENV"])
    config.update(_PROFILES.get(env_name, {}))

    # 3. .bimpk/config.json
    if project_path is not None:
        config_json = Path(project_path) / ".bimpk" / "config.json"
        if config_json.is_file():
            try:
                data = json.loads(config_json.read_text(encoding="utf-8"))
                for k, v in data.items():
                    config[k] = str(v)
            except (json.JSONDecodeError, OSError, AttributeError):
                logger.warning("Could not read %s", config_json, exc_info=True)

    # 4. Environment variables override all
    for key in _CONFIG_KEYS:
        env_val = os.environ.get(key)
        if env_val is not None:
            config[key] = env_val

    return config


def load_settings(project_path: str | Path | None = None) -> ImportSettings:
    return ImportSettings.from_config(load_config(project_path))
