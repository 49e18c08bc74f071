"""
Logging setup for the sun score service and CLI.

The dictConfig document lives next to this module. ``SUNSCORE_LOG_CONFIG``
points at an alternative file.
"""
import logging
import logging.config
import os
from pathlib import Path
from typing import Optional, Union

import yaml

DEFAULT_CONFIG = Path(__file__).parent / "logging_config.yaml"
FALLBACK_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _fallback(level: int, reason: str) -> None:
    logging.basicConfig(level=level, format=FALLBACK_FORMAT)
    logging.getLogger(__name__).warning(f"⚠️ {reason}; using basic logging")


def setup_logging(
    config_path: Optional[Union[str, Path]] = None,
    default_level: int = logging.INFO,
    level: Optional[Union[int, str]] = None,
) -> None:
    """
    Configure logging from YAML, falling back to ``logging.basicConfig``.

    Args:
        config_path: YAML file to load. Defaults to ``SUNSCORE_LOG_CONFIG`` or
                     the bundled ``logging_config.yaml``.
        default_level: Level for the basic fallback configuration.
        level: Optional override applied to the ``sunscore`` logger after
               the file is loaded (e.g. ``"DEBUG"``).
    """
    path = Path(config_path or os.environ.get("SUNSCORE_LOG_CONFIG") or DEFAULT_CONFIG)

    if not path.exists():
        _fallback(default_level, f"Logging configuration not found: {path}")
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                logging.config.dictConfig(yaml.safe_load(f))
            logging.getLogger(__name__).info(f"Logging configured from {path}")
        except (OSError, ValueError, TypeError, AttributeError, yaml.YAMLError) as e:
            _fallback(default_level, f"Invalid logging configuration {path}: {e}")

    if level is not None:
        logging.getLogger("sunscore").setLevel(level.upper() if isinstance(level, str) else level)
