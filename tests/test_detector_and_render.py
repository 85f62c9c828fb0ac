from __future__ import annotations

from pathlib import Path

import sys

import numpy as np
import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from expressface.face.detector import DetectorConfig, InsightFaceDetector, validate_landmark_layout
from expressface.face.types import Box, Detection, FrameResult, Point
from expressface.utils.serializer import decode_snapshot, encode_snapshot, serialize_frame_result
from expressface.video.render import annotate


class _FakeFace:
    def __init__(self, bbox, kps=None, det_score=0.9, landmark_2d_106=None):
        self.bbox = np.asarray(bbox, dtype=np.float32)
        self.kps = None if kps is None else np.asarray(kps, dtype=np.float32)
        self.det_score = det_score
        self.landmark_2d_106 = landmark_2d_106


class _FakeApp:
    def __init__(self, faces):
        self.faces = faces

    def get(self, frame):
        return list(self.faces)


def _detector(monkeypatch: pytest.MonkeyPatch, faces, **cfg) -> InsightFaceDetector:
    monkeypatch.setattr(InsightFaceDetector, "_initialize_model", lambda self: None)
    det = InsightFaceDetector(DetectorConfig(**cfg))
    det._app = _FakeApp(faces)
    return det


KPS = [[100, 100], [140, 100], [120, 120], [105, 150], [135, 150]]


def test_insightface_chin_from_contour(monkeypatch: pytest.MonkeyPatch):
    lmk = np.zeros((106, 2), dtype=np.float32)
    lmk[:, 1] = 90.0
    lmk[16] = [121.0, 182.0]  # lowest contour point
    lmk[60] = [120.0, 400.0]  # not on the contour, ignored
    det = _detector(monkeypatch, [_FakeFace([80, 80, 160, 200], KPS, 0.95, lmk)])

    out = det.detect(np.zeros((240, 320, 3), dtype=np.uint8))
    assert len(out) == 1
    assert out[0].box == Box(80, 80, 80, 120)
    assert len(out[0].landmarks) == 6
    assert out[0].landmarks[5] == Point(121.0, 182.0)
    assert out[0].confidence == pytest.approx(0.95)
    assert out[0].expressions == {}


def test_insightface_without_106_keeps_five_points(monkeypatch: pytest.MonkeyPatch):
    det = _detector(monkeypatch, [_FakeFace([80, 80, 160, 200], KPS)])
    out = det.detect(np.zeros((240, 320, 3), dtype=np.uint8))
    assert len(out[0].landmarks) == 5


def test_insightface_filters_low_confidence_and_empty_frames(monkeypatch: pytest.MonkeyPatch):
    det = _detector(monkeypatch, [_FakeFace([0, 0, 10, 10], KPS, det_score=0.2)], min_confidence=0.5)
    assert det.detect(np.zeros((240, 320, 3), dtype=np.uint8)) == []
    assert det.detect(np.zeros((0, 0, 3), dtype=np.uint8)) == []
    assert det.detect(None) == []


def test_layout_validation():
    validate_landmark_layout(("left_eye", "right_eye", "nose", "left_mouth", "right_mouth", "chin", "extra"))
    validate_landmark_layout(("left_eye", "right_eye"))
    with pytest.raises(ValueError):
        validate_landmark_layout(("nose", "left_eye"))


def _result() -> FrameResult:
    det = Detection(
        box=Box(80, 80, 80, 120),
        landmarks=[Point(100, 100), Point(140, 100)],
        expressions={"happy": 0.7, "neutral": 0.3},
        confidence=0.9,
    )
    return FrameResult(face_count=1, detections=[det], top_expression="happy", confidence=70, recognized_name="Zoë")


def test_annotate_draws_on_a_copy():
    frame = np.zeros((300, 300, 3), dtype=np.uint8)
    vis = annotate(frame, _result())
    assert vis.shape == frame.shape
    assert not np.any(frame)
    assert np.any(vis)


def test_snapshot_data_url():
    frame = np.full((48, 64, 3), 127, dtype=np.uint8)
    url = encode_snapshot(frame)
    assert url.startswith("data:image/jpeg;base64,")
    img = decode_snapshot(url)
    assert img.shape == frame.shape
    assert decode_snapshot("") is None


def test_serialize_frame_result():
    out = serialize_frame_result(_result(), frame_shape=(300, 400))
    assert out["face_count"] == 1
    assert out["recognized_name"] == "Zoë"
    d = out["detections"][0]
    assert d["box"] == {"x": 80.0, "y": 80.0, "width": 80.0, "height": 120.0}
    assert d["box_norm"] == [0.2, 0.2667, 0.4, 0.6667]
    assert d["landmarks"] == [[100.0, 100.0], [140.0, 100.0]]


def test_list_faces_shows_snapshot_size(capsys):
    import face_demo
    from expressface.face.gallery import FaceGallery, KeyValueGalleryStore
    from expressface.storage import MemoryKeyValueStore

    gallery = FaceGallery(KeyValueGalleryStore(MemoryKeyValueStore()), clock=lambda: 1000)
    snapshot = encode_snapshot(np.full((48, 64, 3), 127, dtype=np.uint8))
    gallery.enroll("alice", [0.5] * 128, snapshot)
    gallery.enroll("bob", [0.5] * 128)

    face_demo._list_faces(gallery)
    lines = capsys.readouterr().out.strip().splitlines()
    assert lines[0].split("\t")[1] == "alice"
    assert lines[0].split("\t")[-1] == "64x48"
    assert lines[1].split("\t")[-1] == "-"
