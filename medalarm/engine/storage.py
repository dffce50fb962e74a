# medalarm/engine/storage.py

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

CURRENT_USER_KEY = "current_user"


class SessionStore:
    """JSON file key-value store holding the signed-in user record."""

    def __init__(self, path):
        self.path = Path(path)

    def _read(self):
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError):
            logger.warning("[SESSION] Could not read %s", self.path, exc_info=True)
            return {}

    def _write(self, data):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data), encoding="utf-8")
        except OSError:
            logger.warning("[SESSION] Could not write %s", self.path, exc_info=True)

    def get(self, key):
        return self._read().get(key)

    def set(self, key, value):
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key):
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    # ------------------------------------------------------
    # Current user
    # ------------------------------------------------------
    def get_current_user(self):
        return self.get(CURRENT_USER_KEY)

    def save_current_user(self, user):
        self.set(CURRENT_USER_KEY, user)

    def clear_current_user(self):
        self.remove(CURRENT_USER_KEY)


def patient_id_for(user):
    """Whose medicines this session looks at: own for patients, first linked for caregivers."""
    if not user:
        return None
    if user.get("role") == "patient":
        return user.get("id") or user.get("_id")
    if user.get("role") == "caregiver":
        linked = user.get("linkedUsers") or []
        if not linked:
            return None
        first = linked[0]
        if isinstance(first, dict):
            return first.get("id") or first.get("_id")
        return first
    return None
