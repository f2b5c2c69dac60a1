# qibla_store.py
# Handles all file I/O for the Qibla engine.
# Keeps the last known coordinate and permission flags in a JSON file
# and appends session transitions to a JSONL log.

import json
import os
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from .models import Coord, QiblaSnapshot
from .qibla_config import QiblaConfig

logger = logging.getLogger(__name__)


class QiblaStore:
    """
    Small persisted key-value store for session start-up data.

    Args:
        config: QiblaConfig instance for file paths and directories.
    """

    def __init__(self, config: Optional[QiblaConfig] = None) -> None:
        self.config = config or QiblaConfig()
        os.makedirs(self.config.log_dir, exist_ok=True)

    # ------------------------------------------------------------------
    # Raw key-value access
    # ------------------------------------------------------------------

    def _read(self) -> Dict[str, Any]:
        path = self.config.state_filepath
        if not os.path.exists(path):
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (IOError, ValueError) as e:
            logger.error(f"Failed to read state from {path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, **values: Any) -> bool:
        path = self.config.state_filepath
        data = self._read()
        data.update(values)
        data["saved_at"] = datetime.now().isoformat()
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            return True
        except IOError as e:
            logger.error(f"Failed to save state to {path}: {e}")
            return False

    # ------------------------------------------------------------------
    # Last known location
    # ------------------------------------------------------------------

    def save_location(self, coord: Coord) -> bool:
        """
        Remember the latest fix for instant display on the next start.

        Returns:
            True on success, False on failure.
        """
        return self._write(last_location=coord.to_dict(), location_permission_granted=True)

    def load_location(self) -> Optional[Coord]:
        """
        Returns:
            The cached coordinate, or None if nothing valid is stored.
        """
        raw = self._read().get("last_location")
        if not raw:
            return None
        try:
            return Coord.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring invalid cached location {raw!r}: {e}")
            return None

    # ------------------------------------------------------------------
    # Permission flags
    # ------------------------------------------------------------------

    def location_permission_granted(self) -> bool:
        return bool(self._read().get("location_permission_granted", False))

    def set_location_permission(self, granted: bool) -> bool:
        return self._write(location_permission_granted=granted)

    def orientation_permission_granted(self) -> bool:
        return bool(self._read().get("orientation_permission_granted", False))

    def set_orientation_permission(self, granted: bool) -> bool:
        return self._write(orientation_permission_granted=granted)

    # ------------------------------------------------------------------
    # Session event logging
    # ------------------------------------------------------------------

    def log_event(self, snapshot: QiblaSnapshot, event: str) -> None:
        """
        Append a single session transition to the event log.

        Args:
            snapshot: State right after the transition.
            event:    Short name of what happened, e.g. "calibrated".
        """
        entry = {"timestamp": datetime.now().isoformat(), "event": event}
        entry.update(snapshot.to_dict())
        try:
            with open(self.config.event_log_filepath, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except IOError as e:
            logger.error(f"Failed to write event log: {e}")
