import base64

from typing import Dict, Optional

import cv2
import numpy as np

from expressface.face.types import Detection, FrameResult, StoredFace


def stored_face_to_dict(face: StoredFace) -> Dict:
    """Serialize a StoredFace into the persisted record shape."""
    return {
        "id": str(face.id),
        "name": str(face.name),
        "features": [float(x) for x in face.features],
        "timestamp": int(face.timestamp),
        "imageData": str(face.image_data or ""),
    }


def stored_face_from_dict(record: Dict) -> StoredFace:
    """Rebuild a StoredFace from a persisted record.

    Raises KeyError/TypeError/ValueError on malformed records; the gallery store
    turns those into StorageCorruptError.
    """
    if not isinstance(record, dict):
        raise TypeError(f"record must be an object, got {type(record).__name__}")
    features = record["features"]
    if not isinstance(features, list):
        raise TypeError("features must be a list")
    name = str(record["name"])
    if not name.strip():
        raise ValueError("empty name")
    return StoredFace(
        id=str(record["id"]),
        name=name,
        features=[float(x) for x in features],
        timestamp=int(record.get("timestamp", 0)),
        image_data=str(record.get("imageData", "") or ""),
    )


def encode_snapshot(frame: np.ndarray, quality: int = 80) -> str:
    """Encode a BGR frame as a `data:image/jpeg;base64,...` URL."""
    ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise ValueError("JPEG encoding failed")
    return "data:image/jpeg;base64," + base64.b64encode(buf.tobytes()).decode("ascii")


def decode_snapshot(data_url: str) -> Optional[np.ndarray]:
    """Decode a snapshot data URL back into a BGR frame, or None if it is not one."""
    if not data_url or "," not in data_url:
        return None
    _, payload = data_url.split(",", 1)
    try:
        raw = base64.b64decode(payload)
    except (ValueError, TypeError):
        return None
    img = cv2.imdecode(np.frombuffer(raw, dtype=np.uint8), cv2.IMREAD_COLOR)
    return img


def serialize_detection(det: Detection, frame_shape=None) -> Dict:
    """Serialize a Detection into JSON-safe form and optionally add normalized coords.

    frame_shape: (h, w)
    """
    box = det.box
    ed = {
        "box": {
            "x": round(float(box.x), 2),
            "y": round(float(box.y), 2),
            "width": round(float(box.width), 2),
            "height": round(float(box.height), 2),
        },
        "landmarks": [[round(float(p.x), 2), round(float(p.y), 2)] for p in det.landmarks],
        "expressions": {k: round(float(v), 4) for k, v in det.expressions.items()},
        "confidence": round(float(det.confidence), 4),
    }

    if frame_shape is not None:
        try:
            h, w = int(frame_shape[0]), int(frame_shape[1])
            x1, y1, x2, y2 = box.to_xyxy()
            ed["box_norm"] = [round(x1 / w, 4), round(y1 / h, 4), round(x2 / w, 4), round(y2 / h, 4)]
        except (ZeroDivisionError, TypeError, IndexError):
            ed["box_norm"] = None

    return ed


def serialize_frame_result(result: FrameResult, frame_shape=None) -> Dict:
    return {
        "face_count": int(result.face_count),
        "detections": [serialize_detection(d, frame_shape) for d in result.detections],
        "top_expression": str(result.top_expression),
        "confidence": int(result.confidence),
        "recognized_name": str(result.recognized_name),
    }
