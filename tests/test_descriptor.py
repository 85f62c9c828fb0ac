from __future__ import annotations

from pathlib import Path

import sys

import numpy as np
import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from expressface.face.descriptor import FILL_VALUE, extract_features
from expressface.face.types import Box, Detection, Point


def _sample_landmarks():
    return [
        Point(100, 100),  # left eye
        Point(140, 100),  # right eye
        Point(120, 120),  # nose
        Point(105, 150),  # left mouth
        Point(135, 150),  # right mouth
        Point(120, 180),  # chin
    ]


BOX = Box(x=80, y=80, width=80, height=120)


@pytest.mark.parametrize("n_landmarks", [0, 1, 5, 6, 50])
def test_length_and_finite_for_any_landmark_count(n_landmarks: int):
    pts = [Point(100 + i, 100 + 2 * i) for i in range(n_landmarks)]
    vec = extract_features(Detection(box=BOX, landmarks=pts))
    assert vec.shape == (128,)
    assert np.all(np.isfinite(vec))


def test_sparse_landmarks_use_only_box_features():
    vec = extract_features(Detection(box=BOX, landmarks=_sample_landmarks()[:5]))
    assert vec[0] == pytest.approx(80 / 120)
    assert vec[1] == pytest.approx(0.8)
    assert vec[2] == pytest.approx(1.2)
    assert np.all(vec[3:] == FILL_VALUE)


def test_landmark_features_values():
    vec = extract_features(Detection(box=BOX, landmarks=_sample_landmarks()))
    expected = [
        80 / 120,
        0.8,
        1.2,
        40 / 80,  # eye distance / box width
        20 / 120,  # nose-to-eye / box height
        30 / 80,  # mouth width / box width
        80 / 120,  # face height / box height
        30 / 40,  # mouth width / eye distance
        20 / 80,  # nose-to-eye / face height
        120 / 80,  # mid-eye x / box width
        100 / 120,  # mid-eye y / box height
        120 / 80,  # nose x / box width
        120 / 120,  # nose y / box height
    ]
    np.testing.assert_allclose(vec[:13], expected)
    assert np.all(vec[13:] == FILL_VALUE)


def test_deterministic():
    det = Detection(box=BOX, landmarks=_sample_landmarks(), confidence=0.9)
    a = extract_features(det)
    b = extract_features(Detection(box=BOX, landmarks=_sample_landmarks(), confidence=0.3))
    np.testing.assert_array_equal(a, b)


def test_degenerate_geometry_stays_finite():
    same = [Point(50, 50)] * 6
    vec = extract_features(Detection(box=Box(0, 0, 0, 0), landmarks=same))
    assert vec.shape == (128,)
    assert np.all(np.isfinite(vec))
