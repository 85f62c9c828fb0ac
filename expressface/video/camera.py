from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import cv2
import numpy as np

from expressface.errors import CameraAccessDeniedError
from expressface.utils.log import get_logger

logger = get_logger(__name__)


class VideoSource(ABC):
    """Frame source consumed by the detection loop."""

    @abstractmethod
    def start(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    @abstractmethod
    def is_ready(self) -> bool:
        """True once frames with a valid size can be read."""
        pass

    @abstractmethod
    def frame_size(self) -> Tuple[int, int]:
        """Current (width, height); (0, 0) until known."""
        pass

    @abstractmethod
    def read(self) -> Optional[np.ndarray]:
        """Return the next BGR frame, or None when none is available."""
        pass


class OpenCVCamera(VideoSource):
    """Webcam via cv2.VideoCapture."""

    def __init__(self, device=0, width: int = 1280, height: int = 720):
        self.device = device
        self.width = int(width)
        self.height = int(height)
        self._cap: Optional[cv2.VideoCapture] = None

    def start(self) -> None:
        if self._cap is not None:
            return
        cap = cv2.VideoCapture(self.device)
        if not cap.isOpened():
            cap.release()
            raise CameraAccessDeniedError(self.device, "device could not be opened")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._cap = cap
        w, h = self.frame_size()
        logger.info(f"Camera {self.device} started ({w}x{h})")

    def stop(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info(f"Camera {self.device} stopped")

    def frame_size(self) -> Tuple[int, int]:
        if self._cap is None:
            return 0, 0
        return int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0), int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)

    def is_ready(self) -> bool:
        w, h = self.frame_size()
        return w > 0 and h > 0

    def read(self) -> Optional[np.ndarray]:
        if self._cap is None:
            return None
        ok, frame = self._cap.read()
        if not ok or frame is None:
            return None
        return frame
