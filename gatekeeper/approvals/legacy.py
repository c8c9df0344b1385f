"""Flat key-value state from earlier versions, read once for migration."""

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

# Keys written by earlier versions
LEGACY_COMMAND_RULES_KEY = "globalCommandRules"
LEGACY_WRITE_APPROVED_KEY = "globalWriteApproved"
LEGACY_PATH_RULES_KEY = "globalPathRules"
LEGACY_WRITE_RULES_KEY = "globalWriteRules"
LEGACY_SESSIONS_KEY = "approvalSessions"
MIGRATED_KEY = "configMigrated"

LEGACY_KEYS = (
    LEGACY_COMMAND_RULES_KEY,
    LEGACY_WRITE_APPROVED_KEY,
    LEGACY_PATH_RULES_KEY,
    LEGACY_WRITE_RULES_KEY,
    LEGACY_SESSIONS_KEY,
)


class LegacyStateStore(Protocol):
    """Abstract flat key-value store."""

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or default if the key is absent."""
        ...

    def update(self, key: str, value: Any) -> None:
        """Store a value; None removes the key."""
        ...


class JsonStateStore:
    """
    LegacyStateStore backed by a single JSON object on disk.

    An unreadable or malformed file behaves like an empty store.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._data: dict[str, Any] = self._load()

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def update(self, key: str, value: Any) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value
        self._save()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self) -> None:
        tmp_path = self.path.with_name(f"{self.path.name}.tmp.{os.getpid()}")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(self._data, indent=2) + "\n", encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError:
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            raise
