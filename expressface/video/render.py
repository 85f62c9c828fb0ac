from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import cv2
import numpy as np

from expressface.config import UNKNOWN_LABEL
from expressface.face.types import FrameResult
from expressface.utils.draw import draw_box, draw_points, draw_texts

# BGR
_BOX_COLOR = (246, 130, 59)
_LANDMARK_COLOR = (212, 182, 6)
_EXPRESSION_COLOR = (36, 191, 251)
_CONFIDENCE_COLOR = (255, 255, 255)
_NAME_COLOR = (129, 185, 16)


class Renderer(ABC):
    @abstractmethod
    def render(self, frame: np.ndarray, result: FrameResult) -> None:
        pass


def annotate(frame: np.ndarray, result: FrameResult, unknown_label: str = UNKNOWN_LABEL) -> np.ndarray:
    """Return a copy of `frame` with boxes, landmarks, expression and name drawn on."""
    vis = frame.copy()
    texts = []
    for det in result.detections:
        x1, y1, x2, y2 = det.box.to_xyxy()
        cx = int((x1 + x2) / 2)
        draw_box(vis, (x1, y1, x2, y2), color=_BOX_COLOR)
        draw_points(vis, [(p.x, p.y) for p in det.landmarks], color=_LANDMARK_COLOR)

        # The headline expression and name belong to the primary face.
        texts.append((result.top_expression.upper(), (cx, int(y1) - 30), 28, _EXPRESSION_COLOR))
        texts.append((f"{result.confidence}%", (cx, int(y1) - 5), 20, _CONFIDENCE_COLOR))
        if result.recognized_name != unknown_label:
            texts.append((result.recognized_name, (cx, int(y2) + 35), 24, _NAME_COLOR))

    texts.append((f"Faces: {result.face_count}", (80, 30), 20, _CONFIDENCE_COLOR))
    draw_texts(vis, texts)
    return vis


class OpenCVRenderer(Renderer):
    """Shows annotated frames in a HighGUI window and records the last key press."""

    def __init__(self, window_name: str = "expressface", unknown_label: str = UNKNOWN_LABEL):
        self.window_name = window_name
        self.unknown_label = unknown_label
        self.last_key: Optional[int] = None

    def render(self, frame: np.ndarray, result: FrameResult) -> None:
        vis = annotate(frame, result, unknown_label=self.unknown_label)
        cv2.imshow(self.window_name, vis)
        key = cv2.waitKey(1) & 0xFF
        self.last_key = None if key == 0xFF else key

    def close(self) -> None:
        cv2.destroyAllWindows()
