from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict

class SnapshotStore:
    """JSON file of named snapshots (Q-table, reward memory, ...).

    Read failures are logged and treated as empty; write failures are logged and
    reported through the return value. Nothing is retried.
    """

    def __init__(self, path: str = "data/engine_state.json"):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except Exception as exc:
            logging.warning("state load failed %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logging.warning("state file %s is not an object; ignoring", self.path)
            return {}
        return data

    def load(self, key: str) -> Dict[str, Any]:
        snap = self._read_all().get(key)
        if snap is None:
            return {}
        if not isinstance(snap, dict):
            logging.warning("snapshot %s is not an object; ignoring", key)
            return {}
        return snap

    def save(self, key: str, data: Dict[str, Any]) -> bool:
        payload = self._read_all()
        payload[key] = data
        payload["updated_at"] = time.time()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(self.path)
        except Exception as exc:
            logging.warning("state save failed %s/%s: %s", self.path, key, exc)
            return False
        return True
