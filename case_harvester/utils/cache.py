import hashlib
import json
import os
import tempfile
import time
from pathlib import Path

DEFAULT_API_CACHE_DIR = ".cache/api"


def _key_hash(key):
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def _cache_path(key, cache_dir):
    return os.path.join(cache_dir, f"{_key_hash(key)}.json")


def atomic_write_json(path, data):
    """Write JSON to a temp file in the target directory, then rename it over path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    return path


def load_json_cache(key, cache_dir=DEFAULT_API_CACHE_DIR, max_age=None):
    """Return the cached API payload for key, or None when absent, unreadable or older than max_age seconds."""
    path = _cache_path(key, cache_dir)
    if not os.path.exists(path):
        return None
    if max_age is not None and time.time() - os.path.getmtime(path) > max_age:
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return None


def save_json_cache(key, data, cache_dir=DEFAULT_API_CACHE_DIR):
    try:
        return atomic_write_json(_cache_path(key, cache_dir), data)
    except OSError:
        return None
