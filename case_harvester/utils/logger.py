import logging
import os
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_configured = False


def _configure_root():
    global _configured
    if _configured:
        return
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    root = logging.getLogger("case_harvester")
    root.setLevel(getattr(logging, level, logging.INFO))

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    log_file = os.environ.get("LOG_FILE")
    if log_file:
        path = Path("logs") / log_file
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    _configured = True


def get_logger(name):
    _configure_root()
    if not name.startswith("case_harvester"):
        name = f"case_harvester.{name}"
    return logging.getLogger(name)
