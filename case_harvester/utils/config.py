import copy
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

from case_harvester.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "settings.yaml"

DEFAULT_SETTINGS = {
    "paths": {
        "output_dir": "public",
        "cases_file": "cases.json",
        "items_file": "data.json",
        "cache_dir": ".cache",
    },
    "extraction": {
        "image_base_url": "https://raw.githubusercontent.com/PicoTrex/Awesome-Nano-Banana-images/main/",
        "min_output_confidence": 0.6,
        "strategies": {
            "format": {"threshold": 0.6, "timeout": 5.0},
            "generic": {"threshold": 0.75, "timeout": 10.0},
            "semantic": {"threshold": 0.8, "timeout": 15.0, "min_score": 0.6},
        },
    },
    "batch": {
        "concurrency": 3,
        "pacing_delay": 1.0,
    },
    "dedupe": {
        "truncation_threshold": 10,
        "similarity_threshold": 0.8,
        "similarity_provider": "none",
    },
    "cache": {
        "max_entries": 500,
    },
    "validator": {
        "provider": "none",
        "model": "gpt-4o-mini",
        "base_url": "https://api.openai.com/v1/chat/completions",
        "timeout": 30,
    },
    "github": {
        "enabled": True,
        "terms": [],
        "pages": 1,
        "fetch_readme": True,
    },
    "web": {
        "enabled": True,
        "terms": [],
        "pages": 1,
    },
    "articles": {
        "enabled": True,
        "items": [],
    },
    "crawler": {
        "timeout": 30,
        "max_retries": 2,
        "rate_limit_delay": 1.0,
        "user_agent": "case-harvester/0.1",
        "use_browser": False,
    },
}


def _deep_merge(base, override):
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_env(env_path=None):
    """Load .env from the given path, the working directory or the project root."""
    candidates = [Path(env_path)] if env_path else [Path.cwd() / ".env", DEFAULT_CONFIG_PATH.parent.parent / ".env"]
    for path in candidates:
        if path.exists():
            load_dotenv(path)
            return path
    return None


def load_settings(config_path=None):
    """
    Load settings.yaml merged over the built-in defaults.

    A missing file yields the defaults; a file that cannot be parsed is logged
    and ignored.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    raw = {}
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not load settings from {path}: {e}")
            raw = {}
    else:
        logger.debug(f"No settings file at {path}, using defaults")

    settings = _deep_merge(DEFAULT_SETTINGS, raw)
    level = os.environ.get("LOG_LEVEL")
    if level:
        settings["log_level"] = level
    return settings
