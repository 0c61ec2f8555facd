from __future__ import annotations
import logging
import logging.config
import os
from pathlib import Path
from typing import Optional
import yaml

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_CONFIG_ENV = "SECERN_LOG_CONFIG"
LOG_LEVEL_ENV = "SECERN_LOG_LEVEL"


def resolve_level(quiet: bool = False) -> str:
    """Pick the root log level: the env override wins, then --quiet, then INFO."""
    override = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    if override:
        return override
    return "WARNING" if quiet else "INFO"


def setup_logging(quiet: bool = False, config_path: Optional[str] = None) -> None:
    """Setup logging configuration from YAML file.

    Log records always go to stderr so they never mix with lines passed
    through on stdout.
    """
    config_path = config_path or os.environ.get(LOG_CONFIG_ENV)
    level = resolve_level(quiet)

    path = Path(config_path) if config_path else None
    if path is None or not path.exists():
        # Safe fallback
        logging.basicConfig(level=level, format=LOG_FORMAT, force=True)
        return

    with path.open("r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f)
    logging.config.dictConfig(cfg)
    logging.getLogger().setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
