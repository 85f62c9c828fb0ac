from __future__ import annotations

import math
import time

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Sequence, Tuple

import numpy as np

from expressface.config import EXPRESSION_LABELS
from expressface.face.types import Point
from expressface.utils.math import safe_ratio

MIN_LANDMARKS = 6

DEGRADED_EXPRESSIONS: Dict[str, float] = {
    "neutral": 0.8,
    "happy": 0.1,
    "sad": 0.05,
    "angry": 0.02,
    "fearful": 0.01,
    "disgusted": 0.01,
    "surprised": 0.01,
}


class RandomSource(Protocol):
    def random(self) -> float: ...


def wall_clock_ms() -> float:
    return time.time() * 1000.0


@dataclass
class ExpressionConfig:
    # Amplitude of the slow sinusoidal drift, period ~ 2*pi*3s.
    time_amplitude: float = 0.3
    time_period_ms: float = 3000.0
    # Random jitter is drawn from [0, jitter_scale).
    jitter_scale: float = 0.4
    neutral_floor: float = 0.1


@dataclass(frozen=True)
class FaceGeometry:
    eye_distance: float
    mouth_width: float
    mouth_height: float
    face_height: float
    mouth_curvature: float  # negative = smile, positive = frown
    eye_openness: float
    mouth_openness: float
    mouth_width_ratio: float
    mouth_asymmetry: float

    @classmethod
    def from_landmarks(cls, landmarks: Sequence[Point]) -> "FaceGeometry":
        left_eye, right_eye, nose, left_mouth, right_mouth, chin = landmarks[:MIN_LANDMARKS]

        mid_mouth_y = (left_mouth.y + right_mouth.y) / 2.0
        mid_eye_y = (left_eye.y + right_eye.y) / 2.0
        eye_distance = abs(right_eye.x - left_eye.x)
        mouth_width = abs(right_mouth.x - left_mouth.x)
        mouth_height = abs(mid_mouth_y - nose.y)
        face_height = abs(chin.y - mid_eye_y)

        return cls(
            eye_distance=eye_distance,
            mouth_width=mouth_width,
            mouth_height=mouth_height,
            face_height=face_height,
            mouth_curvature=mid_mouth_y - nose.y,
            eye_openness=safe_ratio(abs(left_eye.y - right_eye.y), eye_distance),
            mouth_openness=safe_ratio(mouth_height, face_height),
            mouth_width_ratio=safe_ratio(mouth_width, eye_distance),
            mouth_asymmetry=abs(left_mouth.y - right_mouth.y),
        )


# label -> (precondition, base score, cap)
_RULES: Tuple[Tuple[str, Callable[[FaceGeometry], bool], Callable[[FaceGeometry], float], float], ...] = (
    (
        "happy",
        lambda g: g.mouth_curvature < -5 and g.mouth_width_ratio > 0.4,
        lambda g: 0.6 + (g.mouth_width_ratio - 0.4) * 2,
        0.95,
    ),
    (
        "surprised",
        lambda g: g.mouth_openness > 0.15 and g.eye_openness < 0.1,
        lambda g: 0.5 + g.mouth_openness * 3,
        0.90,
    ),
    (
        "sad",
        lambda g: g.mouth_curvature > 5 and g.mouth_width_ratio < 0.3,
        lambda g: 0.4 + g.mouth_curvature / 10,
        0.85,
    ),
    (
        "angry",
        lambda g: g.eye_openness > 0.2 and g.mouth_width_ratio < 0.25,
        lambda g: 0.3 + g.eye_openness,
        0.80,
    ),
    (
        "fearful",
        lambda g: g.eye_openness < 0.05 and g.mouth_width_ratio < 0.2,
        lambda g: 0.3 + (0.05 - g.eye_openness) * 10,
        0.75,
    ),
    (
        "disgusted",
        lambda g: g.mouth_asymmetry > 3 and g.mouth_curvature > 2,
        lambda g: 0.3 + g.mouth_asymmetry / 10,
        0.70,
    ),
)


class ExpressionEstimator:
    """Rule-based expression scores from six facial landmarks.

    The time drift and random jitter only exist to make a live preview look
    alive. Pass `rng` and `clock` to pin them (tests use a zero-returning rng and
    a clock stuck at 0).
    """

    def __init__(
        self,
        config: Optional[ExpressionConfig] = None,
        rng: Optional[RandomSource] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config or ExpressionConfig()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.clock = clock or wall_clock_ms

    def estimate(self, landmarks: Optional[Sequence[Point]], now_ms: Optional[float] = None) -> Dict[str, float]:
        if not landmarks or len(landmarks) < MIN_LANDMARKS:
            return dict(DEGRADED_EXPRESSIONS)

        cfg = self.config
        geometry = FaceGeometry.from_landmarks(landmarks)
        now = float(self.clock() if now_ms is None else now_ms)
        time_variation = math.sin(now / cfg.time_period_ms) * cfg.time_amplitude
        jitter = float(self.rng.random()) * cfg.jitter_scale

        expressions: Dict[str, float] = {label: 0.0 for label in EXPRESSION_LABELS}
        for label, active, base, cap in _RULES:
            if active(geometry):
                expressions[label] = min(cap, base(geometry) + time_variation + jitter)

        others = sum(v for k, v in expressions.items() if k != "neutral")
        expressions["neutral"] = max(cfg.neutral_floor, 1.0 - others)

        # Only rescale when the total overshoots; an undershoot is left as is.
        total = sum(expressions.values())
        if total > 1:
            expressions = {k: v / total for k, v in expressions.items()}
        return expressions


def estimate_expressions(
    landmarks: Optional[Sequence[Point]],
    now_ms: float,
    rng: Optional[RandomSource] = None,
) -> Dict[str, float]:
    """Functional form of `ExpressionEstimator.estimate` with an explicit timestamp."""
    return ExpressionEstimator(rng=rng).estimate(landmarks, now_ms=now_ms)


def top_expression(expressions: Dict[str, float]) -> Tuple[str, float]:
    """Return the highest-scoring (label, probability); ties go to the later label."""
    best_label = None
    best_value = 0.0
    for label, value in expressions.items():
        if best_label is None or value >= best_value:
            best_label = label
            best_value = float(value)
    if best_label is None:
        return "neutral", 0.0
    return best_label, best_value
