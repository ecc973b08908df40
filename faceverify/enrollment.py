"""Reference (ID photo) face enrollment."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from faceverify.detectors.face_haar import canonicalize_face, crop_center_square
from faceverify.types import Rect, SetupError, SetupResult

LOGGER = logging.getLogger("faceverify.enrollment")

Canonicalizer = Callable[[np.ndarray, Rect], Optional[np.ndarray]]

CENTER_CROP_SCALE = 0.90


@dataclass
class EnrollmentResult:
    setup: SetupResult
    face: Optional[np.ndarray] = None
    rect: Optional[Rect] = None
    strategy: Optional[str] = None


def prepare_reference(
    image: np.ndarray,
    detector,
    canonicalizer: Canonicalizer = canonicalize_face,
) -> EnrollmentResult:
    """Locate exactly one face in a portrait photo and canonicalise it.

    Detection escalates from strict detection on the whole photo, to strict
    detection on a centred square crop, to relaxed detection on that crop.
    """
    working = image
    strategy = "strict"
    faces: List[Rect] = detector.detect(working, strict=True)
    if not faces:
        LOGGER.debug("No face in full reference photo; retrying on centre crop")
        working = crop_center_square(image, CENTER_CROP_SCALE)
        strategy = "strict_center_crop"
        faces = detector.detect(working, strict=True)
    if not faces:
        LOGGER.debug("Strict detection found nothing; retrying relaxed")
        strategy = "relaxed_center_crop"
        faces = detector.detect(working, strict=False)

    if not faces:
        return EnrollmentResult(
            SetupResult.failure(SetupError.NO_FACE_DETECTED, 0, "No face detected in reference image")
        )
    if len(faces) != 1:
        return EnrollmentResult(
            SetupResult.failure(
                SetupError.MULTIPLE_FACES_DETECTED,
                len(faces),
                f"Detected {len(faces)} faces in reference image; exactly 1 is required",
            )
        )

    rect = faces[0]
    face = canonicalizer(working, rect)
    if face is None:
        return EnrollmentResult(
            SetupResult.failure(SetupError.EXTRACTION_FAILED, 1, "Unable to extract the reference face region")
        )
    LOGGER.info("Reference face located via %s at %s", strategy, rect)
    return EnrollmentResult(SetupResult.ok(), face=face, rect=rect, strategy=strategy)
