"""
Key-value preference store backed by a JSON file.

Values are strings; structured values go through get_json/set_json. Every
write replaces the whole file atomically.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

from mizan.config import DEFAULT_FEATURE_FLAGS, DEFAULT_PREFERENCES_PATH, FEATURE_FLAGS_KEY

logger = logging.getLogger(__name__)


class PreferenceStore:
    """Persistent string preferences for the single local user."""

    def __init__(self, path: Optional[Union[Path, str]] = None):
        """
        Initialize the store.

        Args:
            path: JSON file location. Defaults to data/preferences.json
        """
        self.path = Path(path) if path else DEFAULT_PREFERENCES_PATH
        self._values: Optional[dict[str, str]] = None

    def _load(self) -> dict[str, str]:
        if self._values is None:
            self._values = {}
            if self.path.exists():
                try:
                    data = json.loads(self.path.read_text(encoding="utf-8"))
                    if isinstance(data, dict):
                        self._values = {str(k): str(v) for k, v in data.items()}
                    else:
                        logger.warning(f"Ignoring malformed preference file {self.path}")
                except (OSError, json.JSONDecodeError) as e:
                    logger.error(f"Failed to read preferences from {self.path}: {e}", exc_info=True)
        return self._values

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".prefs-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._values, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._load().get(key, default)

    def set(self, key: str, value: str) -> None:
        if not key:
            raise ValueError("Preference key cannot be empty")
        self._load()[key] = str(value)
        self._save()
        logger.debug(f"Saved preference {key}")

    def delete(self, key: str) -> bool:
        values = self._load()
        if key not in values:
            return False
        del values[key]
        self._save()
        return True

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Preference {key} is not valid JSON")
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value))

    def feature_flags(self) -> dict[str, bool]:
        """Default feature flags overlaid with the stored ones."""
        flags = dict(DEFAULT_FEATURE_FLAGS)
        stored = self.get_json(FEATURE_FLAGS_KEY, {})
        if isinstance(stored, dict):
            flags.update({k: bool(v) for k, v in stored.items()})
        return flags
