"""Live webcam demo: expression estimation + gallery recognition.

Keys in the preview window: `e` enroll the current face (name typed in the
terminal), `q` / Esc quit.
"""

from __future__ import annotations

import argparse
import json
import sys

from datetime import datetime
from pathlib import Path

from expressface.config import DEFAULT_STORAGE_DIR, GALLERY_STORAGE_KEY
from expressface.errors import CameraAccessDeniedError, InvalidNameError, ModelUnavailableError
from expressface.face.detector import DetectorConfig, InsightFaceDetector
from expressface.face.gallery import FaceGallery, KeyValueGalleryStore
from expressface.face.matcher import CosineMatcher, MatcherConfig
from expressface.storage import FileKeyValueStore
from expressface.utils.log import get_logger, set_level
from expressface.utils.serializer import decode_snapshot, serialize_frame_result
from expressface.video.camera import OpenCVCamera
from expressface.video.loop import DetectionLoop, DetectionSession, LoopConfig
from expressface.video.render import OpenCVRenderer

logger = get_logger(__name__)

_QUIT_KEYS = (ord("q"), 27)
_ENROLL_KEY = ord("e")


def _open_gallery(storage_dir: str) -> FaceGallery:
    store = KeyValueGalleryStore(FileKeyValueStore(storage_dir), key=GALLERY_STORAGE_KEY)
    gallery = FaceGallery(store)
    gallery.load()
    return gallery


def _list_faces(gallery: FaceGallery) -> None:
    if len(gallery) == 0:
        print("Gallery is empty")
        return
    for face in gallery:
        enrolled = datetime.fromtimestamp(face.timestamp / 1000.0).strftime("%Y-%m-%d %H:%M:%S")
        snapshot = decode_snapshot(face.image_data) if face.image_data else None
        size = f"{snapshot.shape[1]}x{snapshot.shape[0]}" if snapshot is not None else "-"
        print(f"{face.id}\t{face.name}\t{enrolled}\t{size}")


def _prompt_enroll(loop: DetectionLoop) -> None:
    try:
        name = input("Name for the current face: ")
    except EOFError:
        return
    try:
        face = loop.enroll_current(name)
    except InvalidNameError as e:
        logger.warning(str(e))
        return
    if face is None:
        logger.warning("No face in view, nothing enrolled")
    else:
        logger.info(f"Enrolled {face.name} ({face.id})")


def main() -> int:
    parser = argparse.ArgumentParser(description="Real-time facial expression and recognition demo")
    parser.add_argument("--camera", "-c", default="0", help="camera index or video path (default 0)")
    parser.add_argument("--storage-dir", "-s", default=DEFAULT_STORAGE_DIR, help="gallery storage directory")
    parser.add_argument("--threshold", "-t", type=float, default=0.7, help="recognition cosine threshold")
    parser.add_argument("--model", default="buffalo_l", help="InsightFace model pack name")
    parser.add_argument("--det-size", type=int, default=640, help="InsightFace det_size (default 640)")
    parser.add_argument(
        "--device",
        type=str,
        default="auto",
        choices=["auto", "cpu", "gpu"],
        help="compute device: auto/cpu/gpu (auto uses CUDA when available)",
    )
    parser.add_argument("--interval", type=float, default=0.1, help="pause between detection cycles, seconds")
    parser.add_argument("--cycle-timeout", type=float, default=None, help="per-cycle detector timeout, seconds")
    parser.add_argument("--enroll", metavar="NAME", default=None, help="enroll the first face seen under NAME")
    parser.add_argument("--list", action="store_true", help="list gallery faces and exit")
    parser.add_argument("--delete", metavar="ID", default=None, help="delete a gallery face by id and exit")
    parser.add_argument("--output-json", "-j", default=None, help="write the last frame result and stats as JSON")
    parser.add_argument("--max-frames", type=int, default=None, help="stop after this many cycles")
    parser.add_argument("--log-level", default=None, help="logging level, e.g. DEBUG or WARNING")
    args = parser.parse_args()
    if args.log_level:
        set_level(args.log_level)

    gallery = _open_gallery(args.storage_dir)

    if args.list:
        _list_faces(gallery)
        return 0
    if args.delete is not None:
        gallery.delete(args.delete)
        logger.info(f"Deleted {args.delete} ({len(gallery)} faces left)")
        return 0

    try:
        detector = InsightFaceDetector(
            DetectorConfig(model_name=args.model, det_size=int(args.det_size), device=str(args.device))
        )
    except ModelUnavailableError as e:
        logger.error(f"{e}; camera controls disabled")
        return 2

    device = int(args.camera) if str(args.camera).isdigit() else str(args.camera)
    camera = OpenCVCamera(device)
    try:
        camera.start()
    except CameraAccessDeniedError as e:
        logger.error(f"{e}. Allow camera access and try again.")
        return 3

    renderer = OpenCVRenderer()
    session = DetectionSession(gallery=gallery)
    loop = DetectionLoop(
        detector,
        camera,
        session,
        renderer=renderer,
        config=LoopConfig(poll_interval=float(args.interval), cycle_timeout=args.cycle_timeout),
        matcher=CosineMatcher(MatcherConfig(threshold=float(args.threshold))),
    )

    pending_name = {"value": args.enroll}

    def on_result(lp: DetectionLoop, result) -> None:
        if pending_name["value"] and result.face_count > 0:
            try:
                face = lp.enroll_current(pending_name["value"])
            except InvalidNameError as e:
                logger.warning(str(e))
                face = None
            pending_name["value"] = None
            if face is not None:
                logger.info(f"Enrolled {face.name} ({face.id})")

        key = renderer.last_key
        if key in _QUIT_KEYS:
            lp.stop()
        elif key == _ENROLL_KEY:
            _prompt_enroll(lp)

    logger.info(f"Detection running ({len(gallery)} faces in gallery); press q to quit, e to enroll")
    try:
        loop.run(on_result=on_result, max_cycles=args.max_frames)
    except KeyboardInterrupt:
        loop.stop()
    finally:
        camera.stop()
        renderer.close()

    stats = session.stats
    logger.info(
        f"Session: {stats.faces_detected} faces, {stats.expressions_analyzed} expressions, "
        f"{stats.recognitions_performed} recognitions"
    )

    if args.output_json:
        out = {
            "latest": serialize_frame_result(session.latest) if session.latest is not None else None,
            "stats": {
                "faces_detected": stats.faces_detected,
                "expressions_analyzed": stats.expressions_analyzed,
                "recognitions_performed": stats.recognitions_performed,
            },
        }
        fp = Path(args.output_json)
        fp.parent.mkdir(parents=True, exist_ok=True)
        fp.write_text(json.dumps(out, ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info(f"Wrote {fp}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
