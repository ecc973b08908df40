"""Verification session: reference face, viewport and temporal confirmation."""

from __future__ import annotations

import functools
import logging
import threading
from typing import Optional, Sequence

import numpy as np

from faceverify.config import SessionConfig
from faceverify.detectors.face_haar import canonicalize_face
from faceverify.enrollment import Canonicalizer, prepare_reference
from faceverify.recognition.policy import FaceVerifier
from faceverify.tracking.confirmation import ConfirmationTracker
from faceverify.tracking.viewport import filter_faces_in_viewport
from faceverify.types import (
    FrameError,
    FrameOutcome,
    Rect,
    ReferenceFace,
    SetupError,
    SetupResult,
    Size,
    ViewportRegion,
)

LOGGER = logging.getLogger("faceverify.session")


class VerificationSession:
    """Turns a stream of detected faces into a stable "verified" signal.

    One session owns one reference face and one confirmation window. All
    mutating calls are serialised by a per-session lock; separate sessions
    share nothing.
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        canonicalizer: Optional[Canonicalizer] = None,
    ) -> None:
        self.config = config or SessionConfig()
        self.verifier = FaceVerifier(
            self.config.thresholds,
            min_norm=self.config.min_norm,
            max_norm=self.config.max_norm,
        )
        self.canonicalizer: Canonicalizer = canonicalizer or functools.partial(
            canonicalize_face, size=self.config.canonical_size
        )
        self.tracker = ConfirmationTracker(self.config.required_pass_frames)
        self._reference: Optional[ReferenceFace] = None
        self._viewport: Optional[ViewportRegion] = None
        self._lock = threading.Lock()

    @property
    def has_reference(self) -> bool:
        return self._reference is not None

    @property
    def viewport(self) -> Optional[ViewportRegion]:
        return self._viewport

    @property
    def stable_match(self) -> bool:
        with self._lock:
            return self.tracker.stable_match

    def set_reference(self, face: np.ndarray) -> SetupResult:
        """Install a canonical reference face; always clears the verdict history."""
        features = self.verifier.extract(face)
        with self._lock:
            self.tracker.clear("reference changed")
            if features is None:
                self._reference = None
                LOGGER.warning("Reference face rejected: feature extraction failed")
                return SetupResult.failure(
                    SetupError.EXTRACTION_FAILED, 1, "Unable to extract features from the reference face"
                )
            if self.verifier.is_anomalous(features):
                LOGGER.warning("Reference face descriptor is anomalous; every comparison will fail")
            buffer = np.array(face, copy=True)
            buffer.flags.writeable = False
            self._reference = ReferenceFace(buffer=buffer, features=features)
        LOGGER.info("Reference face set (shape=%s)", buffer.shape)
        return SetupResult.ok()

    def enroll_image(self, image: np.ndarray, detector) -> SetupResult:
        """Detect, canonicalise and install the reference face from a raw photo."""
        try:
            enrollment = prepare_reference(image, detector, self.canonicalizer)
        except Exception as exc:  # noqa: BLE001 - report as typed outcome
            LOGGER.exception("Reference enrollment failed")
            result = SetupResult.failure(SetupError.EXTRACTION_FAILED, 0, f"Enrollment error: {exc}")
        else:
            if enrollment.setup.success and enrollment.face is not None:
                return self.set_reference(enrollment.face)
            result = enrollment.setup

        with self._lock:
            self._reference = None
            self.tracker.clear("reference enrollment failed")
        LOGGER.warning("Reference enrollment failed: %s", result.message)
        return result

    def set_viewport(self, region: Optional[ViewportRegion]) -> None:
        with self._lock:
            self._viewport = region

    def reset(self) -> None:
        with self._lock:
            self.tracker.clear("reset requested")

    def continuous_pass_count(self) -> int:
        with self._lock:
            return self.tracker.continuous_pass_count

    def process_frame(
        self,
        detected_faces: Sequence[Rect],
        frame_buffer: np.ndarray,
        frame_size: Optional[Size] = None,
    ) -> FrameOutcome:
        """Run ROI filter -> canonicalise -> extract -> verify -> confirm for one frame."""
        with self._lock:
            return self._process_locked(detected_faces, frame_buffer, frame_size)

    def try_process_frame(
        self,
        detected_faces: Sequence[Rect],
        frame_buffer: np.ndarray,
        frame_size: Optional[Size] = None,
    ) -> Optional[FrameOutcome]:
        """Like ``process_frame`` but returns ``None`` (frame dropped) if busy."""
        if not self._lock.acquire(blocking=False):
            LOGGER.debug("Session busy; dropping frame")
            return None
        try:
            return self._process_locked(detected_faces, frame_buffer, frame_size)
        finally:
            self._lock.release()

    def _process_locked(
        self,
        detected_faces: Sequence[Rect],
        frame_buffer: np.ndarray,
        frame_size: Optional[Size],
    ) -> FrameOutcome:
        reference = self._reference
        if reference is None:
            return FrameOutcome(
                face_count=0,
                error="Reference face not set",
                error_kind=FrameError.NO_REFERENCE,
            )

        try:
            if frame_size is None:
                frame_size = (int(frame_buffer.shape[1]), int(frame_buffer.shape[0]))
            faces = filter_faces_in_viewport(
                detected_faces,
                self._viewport,
                frame_size,
                strict_tolerance=self.config.roi.strict_tolerance,
                relaxed_tolerance=self.config.roi.relaxed_tolerance,
            )

            if not faces:
                self.tracker.clear("no face")
                return FrameOutcome(face_count=0)

            if len(faces) > 1:
                self.tracker.clear("multiple faces")
                return FrameOutcome(
                    face_count=len(faces),
                    error=f"Detected {len(faces)} faces; exactly 1 is required",
                    error_kind=FrameError.MULTIPLE_FACES,
                )

            face_rect = faces[0]
            candidate = self.canonicalizer(frame_buffer, face_rect)
            features = self.verifier.extract(candidate) if candidate is not None else None
            if features is None:
                self.tracker.clear("extraction failed")
                return FrameOutcome(
                    face_count=1,
                    error="Unable to extract the face region",
                    error_kind=FrameError.EXTRACTION_FAILED,
                    selected_face=face_rect,
                )

            result = self.verifier.verify(features, reference.features)
            stable = self.tracker.record(result.is_pass)
            return FrameOutcome(
                face_count=1,
                verification=result,
                stable_match=stable,
                selected_face=face_rect,
            )
        except Exception as exc:  # noqa: BLE001 - per-frame failures are non-fatal
            LOGGER.exception("Frame processing failed")
            self.tracker.clear("processing error")
            return FrameOutcome(
                face_count=0,
                error=f"Processing error: {exc}",
                error_kind=FrameError.PROCESSING_FAILED,
            )
