"""
Video Sync Record Store

Persists each session's sync offset and chosen video in one JSON file keyed
by session id.
"""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Dict, Optional, Union

from . import constants
from .exceptions import StorageError
from .log import get_logger
from .models import VideoSyncRecord

logger = get_logger(__name__)


class JsonSyncStore:
    """
    JSON-file implementation of the sync store.

    Args:
        path: File to read and write. Created on first save.
    """

    def __init__(self, path: Union[str, Path] = constants.SYNC_STORE_FILE) -> None:
        self.path = Path(path)

    def _read_all(self) -> Dict[str, Dict]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"cannot read sync store {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"sync store {self.path} is not a JSON object")
        return data

    def _write_all(self, data: Dict[str, Dict]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as exc:
            raise StorageError(f"cannot write sync store {self.path}: {exc}") from exc

    def load(self, session_id: str) -> Optional[VideoSyncRecord]:
        entry = self._read_all().get(session_id)
        if entry is None:
            return None
        return VideoSyncRecord(
            session_id=session_id,
            sync_offset_ms=float(entry.get("sync_offset_ms", 0.0)),
            video_name=entry.get("video_name", ""),
            video_handle=entry.get("video_handle"),
        )

    def save(self, record: VideoSyncRecord) -> None:
        data = self._read_all()
        data[record.session_id] = asdict(record)
        self._write_all(data)
        logger.debug("Saved video sync for {}", record.session_id)

    def delete(self, session_id: str) -> None:
        data = self._read_all()
        if data.pop(session_id, None) is not None:
            self._write_all(data)
