import json
import os
from typing import List, Optional

from .base_detector import BaseKeypointSource


class RecordedKeypointSource(BaseKeypointSource):
    """
    Replays keypoint frames captured from the pose model.

    The recording is JSON Lines: each non-blank line is either a bare list of
    17 (y, x, confidence) triples or an object with a "keypoints" field
    holding that list.
    """

    def __init__(self, path: str):
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Recording not found: {path}")
        self.path = path
        self._fh = open(path, "r", encoding="utf-8")
        self._line_no = 0

    def next_frame(self) -> Optional[List[List[float]]]:
        if self._fh is None:
            return None
        for line in self._fh:
            self._line_no += 1
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"{self.path}:{self._line_no}: invalid JSON ({e.msg})") from e
            if isinstance(record, dict):
                record = record.get("keypoints")
            if not isinstance(record, list):
                raise ValueError(f"{self.path}:{self._line_no}: expected a list of keypoints")
            return record
        return None

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
