"""Face detector interface and the InsightFace backend.

Any backend returns `Detection`s with an empty `expressions` map and declares
its landmark order through `landmark_layout`; the detection loop refuses a
detector whose first six landmarks are not in canonical order.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from expressface.config import CANONICAL_LANDMARKS
from expressface.errors import ModelUnavailableError
from expressface.face.types import Box, Detection, Point
from expressface.utils.log import get_logger, suppress_fds

logger = get_logger(__name__)

# In-process model cache: constructing FaceAnalysis twice (tests, restarts) is slow.
_FACEAPP_CACHE: Dict[Tuple, Any] = {}

# 2D-106 landmark indices of the face contour; the lowest one is taken as the chin.
_CONTOUR_106 = slice(0, 33)


def validate_landmark_layout(layout: Sequence[str]) -> None:
    """Raise ValueError if `layout` does not start with the canonical six landmarks.

    Shorter layouts are accepted as long as every declared index agrees; their
    detections simply take the degraded path.
    """
    head = tuple(layout[: len(CANONICAL_LANDMARKS)])
    if head != CANONICAL_LANDMARKS[: len(head)]:
        raise ValueError(f"Unsupported landmark layout {tuple(layout)}; expected prefix {CANONICAL_LANDMARKS}")


def frame_is_valid(frame: Optional[np.ndarray]) -> bool:
    if frame is None:
        return False
    shape = getattr(frame, "shape", None)
    if shape is None or len(shape) < 2:
        return False
    return int(shape[0]) > 0 and int(shape[1]) > 0


class FaceDetector(ABC):
    """Abstract face detector.

    Implementations accept BGR frames (H, W, 3) and return one Detection per face.
    """

    landmark_layout: Tuple[str, ...] = CANONICAL_LANDMARKS

    @abstractmethod
    def detect(self, frame: np.ndarray) -> List[Detection]:
        """Detect faces in a frame. Frames with no valid size return []."""
        pass


@dataclass
class DetectorConfig:
    model_name: str = "buffalo_l"
    det_size: int = 640
    device: str = "auto"  # auto/cpu/gpu
    min_confidence: float = 0.5


class InsightFaceDetector(FaceDetector):
    """InsightFace SCRFD detection + 2D-106 landmarks.

    The five detector keypoints give eyes, nose and mouth corners; the chin is
    appended from the 106-point contour when that model produced landmarks.
    """

    def __init__(self, config: Optional[DetectorConfig] = None):
        self.config = config or DetectorConfig()
        self.ctx_id = -1
        self._app = None
        self._initialize_model()

    def _select_providers(self) -> List[str]:
        device = str(self.config.device).lower().strip()
        if device == "auto":
            try:
                import torch

                device = "gpu" if torch.cuda.is_available() else "cpu"
            except Exception:
                device = "cpu"
        if device == "gpu":
            self.ctx_id = 0
            return ["CUDAExecutionProvider", "CPUExecutionProvider"]
        self.ctx_id = -1
        return ["CPUExecutionProvider"]

    def _initialize_model(self) -> None:
        providers = self._select_providers()
        det_size = (int(self.config.det_size), int(self.config.det_size))
        key = (str(self.config.model_name), tuple(providers), int(self.ctx_id), det_size)

        cached = _FACEAPP_CACHE.get(key)
        if cached is not None:
            self._app = cached
            return

        try:
            from insightface.app import FaceAnalysis

            with suppress_fds():
                app = FaceAnalysis(
                    name=self.config.model_name,
                    providers=providers,
                    allowed_modules=["detection", "landmark_2d_106"],
                )
                app.prepare(ctx_id=self.ctx_id, det_size=det_size)
        except Exception as e:
            logger.error(f"Face detector initialization failed: {e}")
            raise ModelUnavailableError(reason=str(e)) from e

        _FACEAPP_CACHE[key] = app
        self._app = app
        logger.info(f"Loaded InsightFace model {self.config.model_name} (providers={providers}, det_size={det_size})")

    def _to_detection(self, face) -> Optional[Detection]:
        bbox = np.asarray(getattr(face, "bbox", []), dtype=float).reshape(-1)
        if bbox.size < 4:
            return None
        box = Box.from_xyxy(bbox)
        if box.width <= 0 or box.height <= 0:
            return None

        landmarks: List[Point] = []
        kps = getattr(face, "kps", None)
        if kps is not None:
            pts = np.asarray(kps, dtype=float).reshape(-1, 2)
            landmarks = [Point(float(x), float(y)) for x, y in pts[:5]]

        lmk106 = getattr(face, "landmark_2d_106", None)
        if len(landmarks) == 5 and lmk106 is not None:
            contour = np.asarray(lmk106, dtype=float).reshape(-1, 2)[_CONTOUR_106]
            if contour.size:
                cx, cy = contour[int(np.argmax(contour[:, 1]))]
                landmarks.append(Point(float(cx), float(cy)))

        return Detection(box=box, landmarks=landmarks, confidence=float(getattr(face, "det_score", 0.0)))

    def detect(self, frame: np.ndarray) -> List[Detection]:
        if not frame_is_valid(frame):
            return []
        faces = self._app.get(frame) or []
        out: List[Detection] = []
        for face in faces:
            det = self._to_detection(face)
            if det is None or det.confidence < float(self.config.min_confidence):
                continue
            out.append(det)
        return out
