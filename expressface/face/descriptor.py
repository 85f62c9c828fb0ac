"""Geometric face descriptor.

Turns one detection (box + landmarks) into a fixed-length vector so any two faces
can be compared with cosine similarity, however many real features were computed.
"""
from __future__ import annotations

from typing import List

import numpy as np

from expressface.face.types import FEATURE_LENGTH, Detection
from expressface.utils.math import safe_ratio

FILL_VALUE = 0.5
MIN_LANDMARKS = 6


def _box_features(detection: Detection) -> List[float]:
    box = detection.box
    return [
        safe_ratio(box.width, box.height, FILL_VALUE),  # aspect ratio
        float(box.width) / 100.0,
        float(box.height) / 100.0,
    ]


def _landmark_features(detection: Detection) -> List[float]:
    box = detection.box
    left_eye, right_eye, nose, left_mouth, right_mouth, chin = detection.landmarks[:MIN_LANDMARKS]

    mid_eye_x = (left_eye.x + right_eye.x) / 2.0
    mid_eye_y = (left_eye.y + right_eye.y) / 2.0
    eye_distance = abs(right_eye.x - left_eye.x)
    nose_to_eye = abs(nose.y - mid_eye_y)
    mouth_width = abs(right_mouth.x - left_mouth.x)
    face_height = abs(chin.y - mid_eye_y)

    w = box.width
    h = box.height
    return [
        safe_ratio(eye_distance, w, FILL_VALUE),
        safe_ratio(nose_to_eye, h, FILL_VALUE),
        safe_ratio(mouth_width, w, FILL_VALUE),
        safe_ratio(face_height, h, FILL_VALUE),
        safe_ratio(mouth_width, eye_distance, FILL_VALUE),
        safe_ratio(nose_to_eye, face_height, FILL_VALUE),
        safe_ratio(mid_eye_x, w, FILL_VALUE),
        safe_ratio(mid_eye_y, h, FILL_VALUE),
        safe_ratio(nose.x, w, FILL_VALUE),
        safe_ratio(nose.y, h, FILL_VALUE),
    ]


def extract_features(detection: Detection) -> np.ndarray:
    """Return the (128,) float64 descriptor for a detection.

    Layout: 3 box features, then 10 landmark ratios when at least 6 landmarks are
    present, then FILL_VALUE up to FEATURE_LENGTH. With fewer landmarks the
    descriptor is dominated by the fill value and resembles other sparse faces;
    stored galleries depend on that, so it is kept.
    """
    features = _box_features(detection)
    if len(detection.landmarks) >= MIN_LANDMARKS:
        features.extend(_landmark_features(detection))

    out = np.full((FEATURE_LENGTH,), FILL_VALUE, dtype=np.float64)
    real = np.asarray(features[:FEATURE_LENGTH], dtype=np.float64)
    real[~np.isfinite(real)] = FILL_VALUE
    out[: real.shape[0]] = real
    return out
