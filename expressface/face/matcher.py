from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from expressface.config import UNKNOWN_LABEL
from expressface.face.types import FEATURE_LENGTH, FeatureVector, StoredFace
from expressface.utils.log import get_logger
from expressface.utils.math import row_cosine_similarity

logger = get_logger(__name__)


@dataclass
class MatcherConfig:
    # A match must score strictly above this cosine similarity.
    threshold: float = 0.7
    unknown_label: str = UNKNOWN_LABEL


class CosineMatcher:
    """Linear cosine-similarity scan over a small gallery.

    The stacked (N, 128) gallery matrix is cached and rebuilt when the gallery ids
    or their feature objects change, so per-frame cost is one matmul.
    """

    def __init__(self, config: Optional[MatcherConfig] = None):
        self.config = config or MatcherConfig()

        # - matrix: (N, D) float64, one row per comparable face
        # - rows: gallery positions of those rows, in scan order
        # - features: the feature objects the matrix was built from, held so a
        #   replaced vector under a reused id forces a rebuild
        self._cache_key: Optional[Tuple[str, ...]] = None
        self._cache_features: List[FeatureVector] = []
        self._cache_matrix: Optional[np.ndarray] = None
        self._cache_rows: List[int] = []

    def _build_index(self, gallery: Sequence[StoredFace]) -> None:
        mats: List[np.ndarray] = []
        rows: List[int] = []
        for i, face in enumerate(gallery):
            vec = np.asarray(face.features, dtype=np.float64).reshape(-1)
            # A length mismatch scores 0 and can never win, so the row is left out.
            if vec.shape[0] != FEATURE_LENGTH:
                logger.debug(f"Skipping face {face.id}: descriptor length {vec.shape[0]}")
                continue
            mats.append(vec)
            rows.append(i)

        self._cache_rows = rows
        self._cache_matrix = np.stack(mats, axis=0) if mats else None

    def _ensure_index(self, gallery: Sequence[StoredFace]) -> None:
        key = tuple(str(f.id) for f in gallery)
        same_vectors = len(self._cache_features) == len(gallery) and all(
            cached is face.features for cached, face in zip(self._cache_features, gallery)
        )
        if self._cache_key == key and same_vectors:
            return
        self._cache_key = key
        self._cache_features = [f.features for f in gallery]
        self._build_index(gallery)

    def best_match(self, query: FeatureVector, gallery: Sequence[StoredFace]) -> Tuple[Optional[StoredFace], float]:
        """Return (matched face or None, its similarity).

        Scan order decides ties: the earliest face with the highest similarity
        wins, and it must beat both 0 and the threshold.
        """
        if not gallery:
            return None, 0.0

        q = np.asarray(query, dtype=np.float64).reshape(-1)
        if q.shape[0] != FEATURE_LENGTH:
            return None, 0.0

        self._ensure_index(gallery)
        if self._cache_matrix is None:
            return None, 0.0

        sims = row_cosine_similarity(self._cache_matrix, q)
        # argmax returns the first occurrence of the maximum.
        best_row = int(np.argmax(sims))
        best_sim = float(sims[best_row])
        if best_sim > 0.0 and best_sim > float(self.config.threshold):
            return gallery[self._cache_rows[best_row]], best_sim
        return None, best_sim

    def match(self, query: FeatureVector, gallery: Sequence[StoredFace]) -> str:
        """Return the matched name, or the unknown label."""
        face, sim = self.best_match(query, gallery)
        if face is None:
            return self.config.unknown_label
        logger.debug(f"Matched {face.name} ({face.id}) sim={sim:.4f}")
        return face.name


def match(query: FeatureVector, gallery: Sequence[StoredFace], threshold: float = 0.7) -> str:
    return CosineMatcher(MatcherConfig(threshold=threshold)).match(query, gallery)
