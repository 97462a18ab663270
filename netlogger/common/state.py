"""
Persisted State

File-based state for things that must survive a process restart: whether
logging was active, and which recurring jobs are armed. Each key is one JSON
file in the state directory, replaced atomically on write.
"""

import json
import os
import threading
from datetime import datetime, timezone
from pathlib import Path

DEFAULT_STATE_DIR = Path(os.environ.get("NETLOGGER_STATE_DIR", "/var/lib/netlogger/state"))


class SharedState:
    """
    JSON-file key/value state.

    Writes go to a temp file that is renamed over the target, so a reader
    (or a crash) never sees a half-written file.
    """

    def __init__(self, state_dir: Path | None = None):
        self.state_dir = Path(state_dir or DEFAULT_STATE_DIR)
        self._lock = threading.Lock()

    def _ensure_dir(self) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)

    def _get_path(self, key: str) -> Path:
        return self.state_dir / f"{key}.json"

    def write(self, key: str, data: dict) -> None:
        """
        Write state atomically.

        Args:
            key: State key (becomes filename without .json)
            data: Dictionary to serialize as JSON
        """
        self._ensure_dir()
        path = self._get_path(key)

        data_with_meta = {
            **data,
            "_updated_at": datetime.now(timezone.utc).isoformat(),
        }

        with self._lock:
            temp_path = path.with_suffix(".tmp")
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data_with_meta, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            temp_path.replace(path)

    def read(self, key: str) -> dict:
        """
        Read state.

        Returns:
            Dictionary from JSON file, or empty dict if missing or unreadable
        """
        path = self._get_path(key)
        if not path.exists():
            return {}

        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError):
            return {}

    def update(self, key: str, updates: dict) -> dict:
        """Read, merge updates, and write state. Returns the merged dict."""
        current = self.read(key)
        current.update(updates)
        self.write(key, current)
        return current

    def delete(self, key: str) -> bool:
        """Delete a state file. Returns False if it did not exist."""
        path = self._get_path(key)
        with self._lock:
            if path.exists():
                path.unlink()
                return True
        return False
