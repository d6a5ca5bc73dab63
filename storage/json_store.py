# storage/json_store.py
import io
import json
import os
import tempfile
from typing import Any, Dict, Optional

from utils.logging import get_logger

log = get_logger("store")

HOME_DIR = os.path.expanduser("~/.crypto_portfolio")
CONFIG_PATH = os.path.join(HOME_DIR, "config.json")
STORE_PATH = os.path.join(HOME_DIR, "storage.json")

# Keys shared with the browser build of the tracker
PORTFOLIO_KEY = "cryptoPortfolio"
CURRENCY_KEY = "preferredCurrency"


def _atomic_write_text(path: str, text: str):
    directory = os.path.dirname(os.fspath(path)) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=directory, prefix=".tmp-", text=True)
    try:
        with io.open(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.remove(tmp)


def write_json(path: str, data: Dict[str, Any]):
    _atomic_write_text(path, json.dumps(data, ensure_ascii=False, indent=2))


def read_json(path: str, default: Dict[str, Any] | None = None) -> Dict[str, Any]:
    if not os.path.exists(path):
        return default or {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


# ---- Key-value stores ----

class MemoryStore:
    """In-process key-value store with string values."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(MemoryStore):
    """
    Key-value store persisted as one JSON object of string values.
    Every set() rewrites the whole file atomically (temp file + os.replace)
    before the in-memory copy is updated.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = os.fspath(path or STORE_PATH)
        super().__init__(self._read())

    def _read(self) -> Dict[str, str]:
        try:
            raw = read_json(self.path, {})
        except (OSError, ValueError) as e:
            log.error("Could not read %s (%s). Starting with an empty store.", self.path, e)
            return {}
        if not isinstance(raw, dict):
            log.error("Ignoring %s: expected a JSON object, got %s.", self.path, type(raw).__name__)
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def set(self, key: str, value: str) -> None:
        data = dict(self._data)
        data[key] = str(value)
        write_json(self.path, data)
        self._data = data

    def remove(self, key: str) -> None:
        if key not in self._data:
            return
        data = {k: v for k, v in self._data.items() if k != key}
        write_json(self.path, data)
        self._data = data


# ---- Config helpers ----

DEFAULT_CONFIG = {
    "update_interval_sec": 600,
    "rates_refresh_sec": 1800,
    "per_page": 100,
}

# key -> (min, max)
CONFIG_LIMITS = {
    "update_interval_sec": (30, None),
    "rates_refresh_sec": (60, None),
    "per_page": (1, 250),
}


def read_config() -> Dict[str, Any]:
    cfg = dict(DEFAULT_CONFIG)
    try:
        disk = read_json(CONFIG_PATH, {})
    except (OSError, ValueError) as e:
        log.error("Could not read %s (%s). Using defaults.", CONFIG_PATH, e)
        disk = {}
    cfg.update({k: v for k, v in disk.items() if k in DEFAULT_CONFIG})
    return cfg


def validate_config_value(key: str, value: Any) -> int:
    """Coerce and range-check a config value; raises ValueError."""
    if key not in DEFAULT_CONFIG:
        raise ValueError(f"Unknown key '{key}'. Allowed: {', '.join(DEFAULT_CONFIG)}")
    try:
        num = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer.")
    lo, hi = CONFIG_LIMITS[key]
    if lo is not None and num < lo:
        raise ValueError(f"{key} must be >= {lo}.")
    if hi is not None and num > hi:
        raise ValueError(f"{key} must be <= {hi}.")
    return num


def write_config(cfg: dict):
    """Atomic write of config.json."""
    # keep only known top-level keys; ignore accidental extras
    clean = {k: int(cfg.get(k, default)) for k, default in DEFAULT_CONFIG.items()}
    write_json(CONFIG_PATH, clean)


def ensure_config_exists():
    """Create config.json with defaults if missing."""
    if not os.path.exists(CONFIG_PATH):
        write_config(DEFAULT_CONFIG.copy())
