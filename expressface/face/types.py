from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, List, Sequence

FEATURE_LENGTH = 128

# A FeatureVector is any length-128 float sequence; the extractor emits np.ndarray,
# stored faces carry plain lists so they serialize as JSON.
FeatureVector = Sequence[float]


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Box:
    """Axis-aligned rectangle in frame pixel coordinates."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_xyxy(cls, bbox: Sequence[float]) -> "Box":
        x1, y1, x2, y2 = [float(v) for v in bbox[:4]]
        return cls(x=x1, y=y1, width=x2 - x1, height=y2 - y1)

    def to_xyxy(self) -> List[float]:
        return [self.x, self.y, self.x + self.width, self.y + self.height]


@dataclass
class Detection:
    """One face in one processed frame."""

    box: Box
    landmarks: List[Point] = field(default_factory=list)
    expressions: Dict[str, float] = field(default_factory=dict)
    confidence: float = 0.0

    def with_expressions(self, expressions: Dict[str, float]) -> "Detection":
        return replace(self, expressions=dict(expressions))


@dataclass
class StoredFace:
    """Persistent identity record."""

    id: str
    name: str
    features: List[float]
    timestamp: int  # epoch milliseconds
    image_data: str = ""  # data URL, display only


@dataclass
class FrameResult:
    """What the loop hands to the renderer for one processed frame."""

    face_count: int
    detections: List[Detection]
    top_expression: str
    confidence: int  # percentage of the top expression
    recognized_name: str

    @classmethod
    def empty(cls, unknown_label: str) -> "FrameResult":
        return cls(
            face_count=0,
            detections=[],
            top_expression="neutral",
            confidence=0,
            recognized_name=unknown_label,
        )
