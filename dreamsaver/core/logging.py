"""Logging set-up from the YAML dictConfig shipped in ``configs/``."""
from __future__ import annotations

import logging.config
from pathlib import Path

import yaml

from dreamsaver.core.config import Settings

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "configs" / "logging.yaml"


def configure_logging(settings: Settings) -> None:
    """Apply the YAML logging config, then pin the ``dreamsaver`` logger to ``settings.log_level``.

    Falls back to ``basicConfig`` when the file is missing so a bare install still logs.
    """
    config_path = Path(settings.log_config_path) if settings.log_config_path else DEFAULT_CONFIG_PATH
    level = settings.log_level.upper()
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as config_file:
            logging.config.dictConfig(yaml.safe_load(config_file))
    else:
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    logging.getLogger("dreamsaver").setLevel(level)
