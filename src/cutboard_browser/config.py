"""Configuration persistence: load and save user preferences."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir

from cutboard_browser.models import (
    CONFIG_APP_NAME,
    FAVICON_CACHE_SIZE,
    IMAGE_CACHE_SIZE,
    MAX_PAGE_SIZE,
    PAGE_SIZE,
    UserConfig,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Configuration Persistence
# ============================================================================
#
# Validation contract: _dict_to_config() guarantees valid output for any input:
#
#   Field                  Rule                       Handler
#   ─────────────────────  ─────────────────────────  ──────────────────
#   page_size              1 ≤ x ≤ 200                _clamp_int
#   search_debounce_ms     0 ≤ x ≤ 5000               _clamp_int
#   image_cache_size       x ≥ 1                      _clamp_int
#   favicon_cache_size     x ≥ 1                      _clamp_int
#   *_seconds              x ≥ 0, int or float        _safe_seconds
#   scalar fields          type-checked via _safe_get  _dict_to_config
#
CONFIG_FILENAME = "config.json"
MAX_SEARCH_DEBOUNCE_MS = 5000


def get_config_path() -> Path:
    """Get the path to the configuration file.

    Uses platformdirs for cross-platform config directory:
    - Linux: ~/.config/cutboard-browser/config.json
    - macOS: ~/Library/Application Support/cutboard-browser/config.json
    - Windows: %APPDATA%/cutboard-browser/config.json
    """
    config_dir = Path(user_config_dir(CONFIG_APP_NAME))
    return config_dir / CONFIG_FILENAME


def _config_to_dict(config: UserConfig) -> dict[str, Any]:
    """Serialize UserConfig to a JSON-compatible dictionary."""
    return {
        "version": config.version,
        "store_url": config.store_url,
        "store_timeout_seconds": config.store_timeout_seconds,
        "page_size": _clamp_int(config.page_size, PAGE_SIZE, 1, MAX_PAGE_SIZE),
        "search_debounce_ms": config.search_debounce_ms,
        "image_cache_size": config.image_cache_size,
        "favicon_cache_size": config.favicon_cache_size,
        "favicon_timeout_seconds": config.favicon_timeout_seconds,
        "export_dir": config.export_dir,
    }


def _safe_get(data: dict, key: str, default: Any, expected_type: type) -> Any:
    """Safely get a value from dict with type validation.

    Returns the default if key is missing or value has wrong type.
    """
    value = data.get(key, default)
    if not isinstance(value, expected_type):
        return default
    return value


def _clamp_int(value: Any, default: int, low: int, high: int | None = None) -> int:
    """Validate an integer setting and clamp it into range."""
    if not isinstance(value, int) or isinstance(value, bool):
        return default
    value = max(low, value)
    if high is not None:
        value = min(value, high)
    return value


def _safe_seconds(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return max(0.0, float(value))


def _dict_to_config(data: dict[str, Any]) -> UserConfig:
    """Deserialize a dictionary to UserConfig with type validation."""
    defaults = UserConfig()
    return UserConfig(
        store_url=_safe_get(data, "store_url", defaults.store_url, str) or defaults.store_url,
        store_timeout_seconds=_safe_seconds(
            data.get("store_timeout_seconds"), defaults.store_timeout_seconds
        ),
        page_size=_clamp_int(data.get("page_size"), PAGE_SIZE, 1, MAX_PAGE_SIZE),
        search_debounce_ms=_clamp_int(
            data.get("search_debounce_ms"), defaults.search_debounce_ms, 0, MAX_SEARCH_DEBOUNCE_MS
        ),
        image_cache_size=_clamp_int(data.get("image_cache_size"), IMAGE_CACHE_SIZE, 1),
        favicon_cache_size=_clamp_int(data.get("favicon_cache_size"), FAVICON_CACHE_SIZE, 1),
        favicon_timeout_seconds=_safe_seconds(
            data.get("favicon_timeout_seconds"), defaults.favicon_timeout_seconds
        ),
        export_dir=_safe_get(data, "export_dir", "", str),
        version=_safe_get(data, "version", 1, int),
    )


def load_config() -> UserConfig:
    """Load configuration from disk.

    Returns default config if file doesn't exist or is corrupted.
    """
    config_path = get_config_path()

    if not config_path.exists():
        return UserConfig()

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        logger.warning("Config file has invalid JSON, using defaults: %s", e)
        return UserConfig()
    except OSError as e:
        logger.warning("Could not read config file, using defaults: %s", e)
        return UserConfig()
    if not isinstance(data, dict):
        logger.warning("Config file has invalid structure, using defaults")
        return UserConfig()
    return _dict_to_config(data)


def save_config(config: UserConfig) -> bool:
    """Save configuration to disk atomically.

    Uses write-to-tempfile + os.replace() so an interrupted write never
    leaves a truncated config behind. Returns True on success.
    """
    config_path = get_config_path()

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = _config_to_dict(config)
        json_str = json.dumps(data, indent=2, ensure_ascii=False)
        fd, tmp_path = tempfile.mkstemp(dir=config_path.parent, suffix=".tmp", prefix=".config-")
        closed = False
        try:
            os.write(fd, json_str.encode("utf-8"))
            os.close(fd)
            closed = True
            os.replace(tmp_path, config_path)
        except BaseException:
            if not closed:
                os.close(fd)
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        return True
    except OSError as e:
        logger.error("Failed to save config: %s", e)
        return False


__all__ = [
    "CONFIG_FILENAME",
    "get_config_path",
    "load_config",
    "save_config",
]
