import logging
from pathlib import Path
from typing import Optional
import yaml
from vcomp.config.models import AppConfig

logger = logging.getLogger(__name__)

def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Loads the YAML config; a missing file yields the defaults."""
    if config_path is None or not config_path.exists():
        if config_path is not None:
            logger.debug(f"Config {config_path} not found, using defaults")
        return AppConfig()

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config {config_path} must contain a mapping at the top level")

    return AppConfig(**data)
