from __future__ import annotations

import json
import time

from abc import ABC, abstractmethod
from typing import Callable, Iterator, List, Optional

from expressface.config import GALLERY_STORAGE_KEY
from expressface.errors import InvalidNameError, StorageCorruptError
from expressface.face.types import FeatureVector, StoredFace
from expressface.storage import KeyValueStore
from expressface.utils.log import get_logger
from expressface.utils.serializer import stored_face_from_dict, stored_face_to_dict

logger = get_logger(__name__)


class GalleryStore(ABC):
    """Whole-collection persistence for the gallery."""

    @abstractmethod
    def load_all(self) -> List[StoredFace]:
        ...

    @abstractmethod
    def save_all(self, faces: List[StoredFace]) -> None:
        ...


class KeyValueGalleryStore(GalleryStore):
    """Stores the gallery as one JSON list under a fixed key."""

    def __init__(self, kv: KeyValueStore, key: str = GALLERY_STORAGE_KEY):
        self.kv = kv
        self.key = key

    def load_all(self) -> List[StoredFace]:
        try:
            blob = self.kv.get(self.key)
        except UnicodeDecodeError as e:
            raise StorageCorruptError(self.key, f"not UTF-8 text: {e}") from e
        if blob is None or not str(blob).strip():
            return []
        try:
            data = json.loads(blob)
        except ValueError as e:
            raise StorageCorruptError(self.key, f"invalid JSON: {e}") from e
        if not isinstance(data, list):
            raise StorageCorruptError(self.key, f"expected a list, got {type(data).__name__}")
        try:
            return [stored_face_from_dict(rec) for rec in data]
        except (KeyError, TypeError, ValueError) as e:
            raise StorageCorruptError(self.key, f"malformed record: {e!r}") from e

    def save_all(self, faces: List[StoredFace]) -> None:
        self.kv.set(self.key, json.dumps([stored_face_to_dict(f) for f in faces]))


def normalize_name(name) -> str:
    """Return the trimmed name, or raise InvalidNameError for an empty one."""
    cleaned = str(name or "").strip()
    if not cleaned:
        raise InvalidNameError(name)
    return cleaned


class FaceGallery:
    """In-memory gallery of named descriptors, re-persisted on every mutation."""

    def __init__(self, store: GalleryStore, clock: Optional[Callable[[], float]] = None):
        self.store = store
        self.clock = clock or (lambda: time.time() * 1000.0)
        self._faces: List[StoredFace] = []

    @property
    def faces(self) -> List[StoredFace]:
        return self._faces

    def __len__(self) -> int:
        return len(self._faces)

    def __iter__(self) -> Iterator[StoredFace]:
        return iter(list(self._faces))

    def get(self, face_id: str) -> Optional[StoredFace]:
        for face in self._faces:
            if face.id == str(face_id):
                return face
        return None

    def load(self) -> List[StoredFace]:
        """Load the persisted gallery; a corrupt blob leaves the gallery empty."""
        try:
            faces = self.store.load_all()
        except StorageCorruptError as e:
            logger.warning(f"Gallery storage unreadable, starting empty: {e}")
            faces = []

        seen = set()
        unique: List[StoredFace] = []
        for face in faces:
            if face.id in seen:
                logger.warning(f"Dropping duplicate gallery id {face.id}")
                continue
            seen.add(face.id)
            unique.append(face)

        self._faces = unique
        logger.info(f"Gallery loaded: {len(self._faces)} faces")
        return self._faces

    def _next_id(self, now_ms: int) -> str:
        taken = {f.id for f in self._faces}
        candidate = int(now_ms)
        while str(candidate) in taken:
            candidate += 1
        return str(candidate)

    def enroll(self, name: str, features: FeatureVector, image_data: str = "") -> StoredFace:
        cleaned = normalize_name(name)
        now_ms = int(self.clock())
        face = StoredFace(
            id=self._next_id(now_ms),
            name=cleaned,
            features=[float(x) for x in features],
            timestamp=now_ms,
            image_data=str(image_data or ""),
        )
        updated = self._faces + [face]
        self.store.save_all(updated)
        self._faces = updated
        logger.info(f"Enrolled {face.name} as {face.id} ({len(self._faces)} faces)")
        return face

    def delete(self, face_id: str) -> None:
        updated = [f for f in self._faces if f.id != str(face_id)]
        if len(updated) == len(self._faces):
            logger.debug(f"Delete: no face with id {face_id}")
        self.store.save_all(updated)
        self._faces = updated
