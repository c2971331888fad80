"""Flat JSON snapshot files shadowing the in-memory stores."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class JsonSnapshot:
    """Whole-collection snapshot written after every mutation.

    Writes go to a sibling temp file and are swapped in with ``os.replace``.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable snapshot %s: %s", self.path, exc)
            return []
        if not isinstance(data, list):
            logger.warning("Ignoring snapshot %s: expected a JSON list", self.path)
            return []
        return [item for item in data if isinstance(item, dict)]

    def write(self, items: List[Dict[str, Any]]) -> bool:
        temp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(json.dumps(items), encoding="utf-8")
            os.replace(temp_path, self.path)
        except OSError as exc:
            logger.warning("Snapshot write to %s failed: %s", self.path, exc)
            return False
        return True


def snapshot_for(path: Optional[Union[str, Path]]) -> Optional[JsonSnapshot]:
    return JsonSnapshot(path) if path else None
