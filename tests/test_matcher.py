from __future__ import annotations

from pathlib import Path

import sys

import numpy as np
import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from expressface.face.matcher import CosineMatcher, MatcherConfig, match
from expressface.face.types import StoredFace
from expressface.utils.math import cosine_similarity


def _face(face_id: str, name: str, features) -> StoredFace:
    return StoredFace(id=face_id, name=name, features=[float(x) for x in features], timestamp=int(face_id))


def _vec(seed: int) -> np.ndarray:
    return np.random.default_rng(seed).uniform(-1.0, 1.0, size=128)


def test_cosine_self_and_symmetry():
    a = _vec(1)
    b = _vec(2)
    assert cosine_similarity(a, a) == pytest.approx(1.0)
    assert cosine_similarity(a, b) == cosine_similarity(b, a)


def test_cosine_zero_norm_and_length_mismatch():
    assert cosine_similarity(np.zeros(128), _vec(1)) == 0.0
    assert cosine_similarity(_vec(1)[:64], _vec(1)) == 0.0


def test_empty_gallery_is_unknown():
    assert match(_vec(1), []) == "unknown"


def test_identical_vector_matches():
    vec = _vec(3)
    gallery = [_face("1", "alice", vec)]
    assert match(vec, gallery, threshold=1.0 - 1e-9) == "alice"
    assert match(vec, gallery) == "alice"


def test_below_threshold_is_unknown():
    gallery = [_face("1", "alice", _vec(4))]
    assert match(-_vec(4), gallery) == "unknown"


def test_best_candidate_wins_and_ties_keep_first():
    q = np.ones(128)
    near = np.ones(128)
    near[0] = 0.5
    gallery = [
        _face("1", "near", near),
        _face("2", "exact", q),
        _face("3", "exact-twin", q),
    ]
    matcher = CosineMatcher(MatcherConfig(threshold=0.7))
    face, sim = matcher.best_match(q, gallery)
    assert face.name == "exact"
    assert sim == pytest.approx(1.0)


def test_length_mismatch_entries_never_match():
    q = np.ones(128)
    gallery = [_face("1", "short", np.ones(13)), _face("2", "full", np.ones(128) * 2)]
    assert match(q, gallery) == "full"
    assert match(q, gallery[:1]) == "unknown"


def test_negative_threshold_still_requires_positive_similarity():
    gallery = [_face("1", "opposite", -np.ones(128))]
    assert match(np.ones(128), gallery, threshold=-1.0) == "unknown"


def test_index_rebuilt_when_gallery_changes():
    matcher = CosineMatcher()
    a = _vec(5)
    b = _vec(6)
    gallery = [_face("1", "a", a)]
    assert matcher.match(b, gallery) == "unknown"
    gallery = gallery + [_face("2", "b", b)]
    assert matcher.match(b, gallery) == "b"


def test_degenerate_descriptors_attract_each_other():
    # Two faces seen without landmarks differ only in their box features.
    from expressface.face.descriptor import extract_features
    from expressface.face.types import Box, Detection

    stored = extract_features(Detection(box=Box(0, 0, 80, 120)))
    query = extract_features(Detection(box=Box(0, 0, 200, 150)))
    assert match(query, [_face("1", "sparse", stored)]) == "sparse"


def test_threshold_comparison_is_strict():
    vec = np.array([1.0] * 64 + [0.0] * 64)
    gallery = [_face("1", "alice", vec)]
    assert cosine_similarity(vec, vec) == 1.0
    assert match(vec, gallery, threshold=1.0) == "unknown"
    assert match(vec, gallery, threshold=0.999) == "alice"


def test_reused_matcher_sees_replaced_features_under_same_id():
    ones = np.ones(128)
    matcher = CosineMatcher(MatcherConfig())
    assert matcher.match(ones, [_face("1", "alice", ones)]) == "alice"
    assert matcher.match(ones, [_face("1", "bob", -ones)]) == "unknown"
    assert matcher.match(-ones, [_face("1", "bob", -ones)]) == "bob"
