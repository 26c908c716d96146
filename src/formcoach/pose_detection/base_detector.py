from abc import ABC, abstractmethod
from typing import Optional, Sequence


class BaseKeypointSource(ABC):
    """Base class for anything that feeds keypoint frames into a session."""

    @abstractmethod
    def next_frame(self) -> Optional[Sequence[Sequence[float]]]:
        """
        Fetch the next frame of keypoints.

        Returns:
            17 (y, x, confidence) triples in model order, or None once the
            source is exhausted
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release any resources held by the source."""
        pass

    def __iter__(self):
        while True:
            frame = self.next_frame()
            if frame is None:
                return
            yield frame

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
