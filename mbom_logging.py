"""
mbom_logging.py

Logging setup shared by the Streamlit app and the example scripts.
"""

import logging
from typing import Optional

from mbom_settings import Settings, get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    - Reset any handlers already on the root logger (Streamlit reruns the script).
    - Log to the console, and to `log_file` when one is configured.
    - Use `log_level` from settings (default INFO).
    """
    settings = settings or get_settings()

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()

    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)

    root_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.debug("Logging configured (level=%s)", settings.log_level)
