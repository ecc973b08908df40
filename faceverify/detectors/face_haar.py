"""OpenCV Haar-cascade face detection and face canonicalisation."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple

import cv2
import numpy as np

from faceverify.types import Rect

LOGGER = logging.getLogger("faceverify.detectors.face")

DEFAULT_CASCADE = "haarcascade_frontalface_default.xml"
CANONICAL_SIZE: Tuple[int, int] = (100, 100)


def to_gray(image: np.ndarray) -> np.ndarray:
    """Convert BGR/BGRA/single-channel images to a 2-D uint8 buffer."""
    if image.ndim == 2:
        gray = image
    elif image.ndim == 3 and image.shape[2] == 1:
        gray = image[:, :, 0]
    elif image.ndim == 3 and image.shape[2] == 3:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    elif image.ndim == 3 and image.shape[2] == 4:
        gray = cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    else:
        raise ValueError(f"Unsupported image shape {image.shape}")
    if gray.dtype != np.uint8:
        gray = np.clip(gray, 0, 255).astype(np.uint8)
    return gray


class HaarFaceDetector:
    """Wrapper around ``cv2.CascadeClassifier`` with a strict mode for ID photos."""

    def __init__(
        self,
        cascade_path: Optional[Path] = None,
        scale_factor: float = 1.15,
        min_neighbors: int = 3,
        strict_min_neighbors: int = 6,
        min_size: int = 30,
    ) -> None:
        if cascade_path is None:
            cascade_path = Path(cv2.data.haarcascades) / DEFAULT_CASCADE
        self.classifier = cv2.CascadeClassifier(str(cascade_path))
        if self.classifier.empty():
            raise RuntimeError(
                f"Unable to load Haar cascade from {cascade_path}. "
                "Install opencv-python or pass --cascade explicitly."
            )
        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors
        self.strict_min_neighbors = strict_min_neighbors
        self.min_size = min_size
        LOGGER.info(
            "Loaded Haar cascade %s scale_factor=%.2f min_neighbors=%d/%d",
            cascade_path,
            scale_factor,
            min_neighbors,
            strict_min_neighbors,
        )

    def detect(self, image: np.ndarray, strict: bool = False) -> List[Rect]:
        """Detect faces; strict mode tightens parameters for single-portrait photos."""
        gray = cv2.equalizeHist(to_gray(image))
        height, width = gray.shape[:2]
        short_side = min(width, height)
        if strict:
            min_side = int(short_side * 0.15)
            max_side = int(short_side * 0.6)
            raw = self.classifier.detectMultiScale(
                gray,
                scaleFactor=self.scale_factor,
                minNeighbors=self.strict_min_neighbors,
                minSize=(min_side, min_side),
                maxSize=(max_side, max_side),
            )
        else:
            raw = self.classifier.detectMultiScale(
                gray,
                scaleFactor=self.scale_factor,
                minNeighbors=self.min_neighbors,
                minSize=(self.min_size, self.min_size),
            )
        faces = [Rect.from_xywh(box) for box in raw]
        if strict and faces:
            faces = filter_portrait_faces(faces, width, height)
        LOGGER.debug("Detected %d face(s) (strict=%s)", len(faces), strict)
        return faces


def filter_portrait_faces(faces: List[Rect], image_width: int, image_height: int) -> List[Rect]:
    """Drop implausible portrait detections and keep the largest survivor."""
    image_area = max(1, image_width * image_height)
    center_x = image_width / 2.0
    center_y = image_height / 2.0
    kept: List[Rect] = []
    for face in faces:
        if face.height <= 0:
            continue
        aspect = face.width / face.height
        if aspect < 0.6 or aspect > 1.5:
            LOGGER.debug("Rejecting face %s: aspect ratio %.2f", face, aspect)
            continue
        area_ratio = face.area / image_area
        if area_ratio < 0.02:
            LOGGER.debug("Rejecting face %s: area %.1f%%", face, area_ratio * 100.0)
            continue
        fx, fy = face.center
        offset_x = abs(fx - center_x) / max(1, image_width)
        offset_y = abs(fy - center_y) / max(1, image_height)
        if offset_x > 0.4 or offset_y > 0.4:
            LOGGER.debug("Rejecting face %s: off-centre (%.2f, %.2f)", face, offset_x, offset_y)
            continue
        kept.append(face)
    if len(kept) > 1:
        largest = max(kept, key=lambda f: f.area)
        LOGGER.debug("Multiple portrait candidates; keeping largest %s", largest)
        return [largest]
    return kept


def crop_to_rect(image: np.ndarray, rect: Rect) -> Optional[np.ndarray]:
    height, width = image.shape[:2]
    x1, y1, x2, y2 = rect.as_xyxy()
    x1, y1 = max(0, x1), max(0, y1)
    x2, y2 = min(width, x2), min(height, y2)
    if x2 <= x1 or y2 <= y1:
        return None
    return image[y1:y2, x1:x2]


def canonicalize_face(
    image: np.ndarray,
    rect: Rect,
    size: Tuple[int, int] = CANONICAL_SIZE,
) -> Optional[np.ndarray]:
    """Crop, resize, convert to grayscale and histogram-equalise a face."""
    crop = crop_to_rect(image, rect)
    if crop is None:
        LOGGER.debug("Face rect %s lies outside image %s", rect, image.shape[:2])
        return None
    width, height = [max(1, int(v)) for v in size]
    resized = cv2.resize(crop, (width, height), interpolation=cv2.INTER_LINEAR)
    return cv2.equalizeHist(to_gray(resized))


def crop_center_square(image: np.ndarray, scale: float) -> np.ndarray:
    """Centred square crop whose side is ``scale`` times the short side."""
    safe_scale = min(max(scale, 0.4), 1.0)
    height, width = image.shape[:2]
    side = max(1, int(min(width, height) * safe_scale))
    left = max(0, (width - side) // 2)
    top = max(0, (height - side) // 2)
    return image[top : top + min(side, height - top), left : left + min(side, width - left)]
