from __future__ import annotations

import math
import time

from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import numpy as np

from expressface.errors import DetectionCycleError
from expressface.face.descriptor import extract_features
from expressface.face.detector import FaceDetector, frame_is_valid, validate_landmark_layout
from expressface.face.expression import ExpressionEstimator, top_expression
from expressface.face.gallery import FaceGallery, normalize_name
from expressface.face.matcher import CosineMatcher, MatcherConfig
from expressface.face.types import Detection, FrameResult, StoredFace
from expressface.utils.log import get_logger
from expressface.utils.serializer import encode_snapshot
from expressface.video.camera import VideoSource
from expressface.video.render import Renderer

logger = get_logger(__name__)


def percent(prob: float) -> int:
    """Probability as a whole percentage, halves rounded up."""
    return int(math.floor(float(prob) * 100 + 0.5))


@dataclass
class LoopConfig:
    # Pause between cycles (seconds).
    poll_interval: float = 0.1
    # Per-cycle detector timeout (seconds); None calls the detector inline.
    cycle_timeout: Optional[float] = None
    # Session stats are bumped once every `stats_every` processed frames.
    stats_every: int = 30
    snapshot_quality: int = 80


@dataclass
class SessionStats:
    faces_detected: int = 0
    expressions_analyzed: int = 0
    recognitions_performed: int = 0


@dataclass
class DetectionSession:
    """State shared by the stages of one camera session."""

    gallery: FaceGallery
    latest: Optional[FrameResult] = None
    last_frame: Optional[np.ndarray] = None
    frame_count: int = 0
    stats: SessionStats = field(default_factory=SessionStats)


class DetectionLoop:
    """Frame-by-frame detection: detector -> {expression, descriptor -> matcher} -> renderer.

    One cycle at a time. `stop()` ends scheduling; a detector result that
    arrives after it is dropped.
    """

    def __init__(
        self,
        detector: FaceDetector,
        source: VideoSource,
        session: DetectionSession,
        renderer: Optional[Renderer] = None,
        config: Optional[LoopConfig] = None,
        estimator: Optional[ExpressionEstimator] = None,
        matcher: Optional[CosineMatcher] = None,
    ):
        validate_landmark_layout(getattr(detector, "landmark_layout", ()))
        self.detector = detector
        self.source = source
        self.session = session
        self.renderer = renderer
        self.config = config or LoopConfig()
        self.estimator = estimator or ExpressionEstimator()
        self.matcher = matcher or CosineMatcher(MatcherConfig())

        self._running = False
        self._stop_requested = False
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Optional[Future] = None

    @property
    def unknown_label(self) -> str:
        return self.matcher.config.unknown_label

    @property
    def running(self) -> bool:
        return self._running

    def _detect(self, frame: np.ndarray) -> List[Detection]:
        timeout = self.config.cycle_timeout
        if timeout is None:
            return list(self.detector.detect(frame) or [])

        if self._pending is not None and not self._pending.done():
            raise DetectionCycleError("previous detector call still running")
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="detector")
        self._pending = self._executor.submit(self.detector.detect, frame)
        try:
            return list(self._pending.result(timeout=float(timeout)) or [])
        except FutureTimeoutError as e:
            raise DetectionCycleError(f"detector timed out after {timeout:.2f}s") from e

    def _process(self, detections: List[Detection]) -> FrameResult:
        if not detections:
            return FrameResult.empty(self.unknown_label)

        annotated = [d.with_expressions(self.estimator.estimate(d.landmarks)) for d in detections]
        primary = annotated[0]
        label, prob = top_expression(primary.expressions)
        name = self.matcher.match(extract_features(primary), self.session.gallery.faces)
        return FrameResult(
            face_count=len(annotated),
            detections=annotated,
            top_expression=label,
            confidence=percent(prob),
            recognized_name=name,
        )

    def _update_stats(self, result: FrameResult) -> None:
        session = self.session
        every = max(1, int(self.config.stats_every))
        if result.face_count == 0 or session.frame_count % every != 0:
            return
        session.stats.faces_detected += 1
        session.stats.expressions_analyzed += 1
        if result.recognized_name != self.unknown_label:
            session.stats.recognitions_performed += 1

    def run_cycle(self) -> Optional[FrameResult]:
        """Process one frame. Returns None when nothing was processed this tick."""
        if not self.source.is_ready():
            return None
        frame = self.source.read()
        if not frame_is_valid(frame):
            return None

        self.session.frame_count += 1
        try:
            result = self._process(self._detect(frame))
        except DetectionCycleError as e:
            logger.warning(f"Detection cycle {self.session.frame_count} skipped: {e}")
            result = FrameResult.empty(self.unknown_label)
        except Exception as e:  # backend errors of any type end only this cycle
            logger.warning(f"Detection cycle {self.session.frame_count} failed: {e!r}")
            result = FrameResult.empty(self.unknown_label)

        if self._stop_requested:
            logger.debug("Dropping result that arrived after stop()")
            return None

        self._update_stats(result)
        self.session.latest = result
        self.session.last_frame = frame
        if self.renderer is not None:
            self.renderer.render(frame, result)
        return result

    def run(
        self,
        on_result: Optional[Callable[["DetectionLoop", FrameResult], None]] = None,
        max_cycles: Optional[int] = None,
    ) -> None:
        """Run cycles until `stop()` (or `max_cycles` ticks)."""
        self._running = True
        self._stop_requested = False
        ticks = 0
        try:
            while self._running:
                result = self.run_cycle()
                if result is not None and on_result is not None:
                    on_result(self, result)
                ticks += 1
                if max_cycles is not None and ticks >= int(max_cycles):
                    break
                if self._running and self.config.poll_interval > 0:
                    time.sleep(float(self.config.poll_interval))
        finally:
            self._running = False
            if self._executor is not None:
                # Do not wait on a hung detector; its result is discarded.
                self._executor.shutdown(wait=False)
                self._executor = None
                self._pending = None

    def stop(self) -> None:
        self._stop_requested = True
        self._running = False

    def enroll_current(self, name: str) -> Optional[StoredFace]:
        """Enroll the primary face of the latest processed frame under `name`.

        Returns None when there is no face to capture.
        """
        cleaned = normalize_name(name)
        latest = self.session.latest
        frame = self.session.last_frame
        if latest is None or not latest.detections or frame is None:
            logger.info("Enroll skipped: no face in the latest frame")
            return None

        features = extract_features(latest.detections[0])
        image_data = encode_snapshot(frame, quality=self.config.snapshot_quality)
        return self.session.gallery.enroll(cleaned, features, image_data)

