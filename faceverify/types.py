"""Common dataclasses and type aliases used across the faceverify package."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

# Frame / surface size order: width, height (pixels)
Size = Tuple[int, int]
Point = Tuple[float, float]

# Descriptor layout
LBP_BINS = 256
INTENSITY_BINS = 256
REGION_GRID = 3
REGION_FEATURES = REGION_GRID * REGION_GRID * 2
FEATURE_LENGTH = LBP_BINS + INTENSITY_BINS + REGION_FEATURES

LBP_SLICE = slice(0, LBP_BINS)
INTENSITY_SLICE = slice(LBP_BINS, LBP_BINS + INTENSITY_BINS)
REGION_SLICE = slice(LBP_BINS + INTENSITY_BINS, FEATURE_LENGTH)

CHECK_WEIGHTED = "weightedScore"
CHECK_COSINE = "cosineMin"
CHECK_EUCLIDEAN = "euclideanMin"
CHECK_SCORE_DIFF = "scoreDiff"
CHECK_ANOMALY = "anomaly"


@dataclass(frozen=True)
class Rect:
    """Axis-aligned face box in image pixel coordinates (x, y, width, height)."""

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_xywh(cls, values: Sequence[float]) -> "Rect":
        x, y, w, h = values
        return cls(int(x), int(y), int(w), int(h))

    @property
    def center(self) -> Point:
        return self.x + self.width / 2.0, self.y + self.height / 2.0

    @property
    def max_side(self) -> int:
        return max(self.width, self.height)

    @property
    def area(self) -> int:
        return max(0, self.width) * max(0, self.height)

    def as_xyxy(self) -> Tuple[int, int, int, int]:
        return self.x, self.y, self.x + self.width, self.y + self.height


@dataclass(frozen=True)
class ViewportRegion:
    """Circular region of interest expressed in preview-surface pixels."""

    center_x: float
    center_y: float
    radius: float
    surface_width: int
    surface_height: int

    @classmethod
    def from_bounding_rect(
        cls,
        left: float,
        top: float,
        right: float,
        bottom: float,
        surface_size: Size,
    ) -> "ViewportRegion":
        """Build the circle inscribed in a UI bounding square."""
        width, height = surface_size
        return cls(
            center_x=(left + right) / 2.0,
            center_y=(top + bottom) / 2.0,
            radius=(right - left) / 2.0,
            surface_width=int(width),
            surface_height=int(height),
        )


class SetupError(str, Enum):
    NO_FACE_DETECTED = "no_face_detected"
    MULTIPLE_FACES_DETECTED = "multiple_faces_detected"
    EXTRACTION_FAILED = "extraction_failed"


class FrameError(str, Enum):
    EXTRACTION_FAILED = "extraction_failed"
    NO_REFERENCE = "no_reference"
    MULTIPLE_FACES = "multiple_faces"
    PROCESSING_FAILED = "processing_failed"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of comparing one candidate descriptor against the reference."""

    is_pass: bool
    confidence: float
    cosine_similarity: float
    euclidean_similarity: float
    weighted_score: float
    passed_checks: int
    total_checks: int
    check_details: Mapping[str, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze the check map so consumers cannot mutate a shared result.
        object.__setattr__(self, "check_details", MappingProxyType(dict(self.check_details)))

    @classmethod
    def failed(cls, check_details: Optional[Mapping[str, bool]] = None) -> "VerificationResult":
        return cls(
            is_pass=False,
            confidence=0.0,
            cosine_similarity=0.0,
            euclidean_similarity=0.0,
            weighted_score=0.0,
            passed_checks=0,
            total_checks=0,
            check_details=check_details or {},
        )

    @property
    def is_anomaly(self) -> bool:
        return CHECK_ANOMALY in self.check_details

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_pass": self.is_pass,
            "confidence": self.confidence,
            "cosine_similarity": self.cosine_similarity,
            "euclidean_similarity": self.euclidean_similarity,
            "weighted_score": self.weighted_score,
            "passed_checks": self.passed_checks,
            "total_checks": self.total_checks,
            "check_details": dict(self.check_details),
        }


@dataclass(frozen=True)
class ReferenceFace:
    """Canonical enrollment face and its descriptor, extracted once."""

    buffer: np.ndarray
    features: np.ndarray


@dataclass(frozen=True)
class FrameOutcome:
    """Per-frame result returned by ``VerificationSession.process_frame``."""

    face_count: int
    verification: Optional[VerificationResult] = None
    stable_match: bool = False
    error: Optional[str] = None
    error_kind: Optional[FrameError] = None
    selected_face: Optional[Rect] = None

    @property
    def face_detected(self) -> bool:
        return self.face_count > 0


@dataclass(frozen=True)
class SetupResult:
    """Outcome of installing a reference face."""

    success: bool
    face_count: int
    error: Optional[SetupError] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls) -> "SetupResult":
        return cls(success=True, face_count=1)

    @classmethod
    def failure(cls, error: SetupError, face_count: int, message: str) -> "SetupResult":
        return cls(success=False, face_count=face_count, error=error, message=message)


def rect_center_distance_sq(rect: Rect, point: Point) -> float:
    """Squared distance between a rect centre and a point."""
    cx, cy = rect.center
    dx = cx - point[0]
    dy = cy - point[1]
    return dx * dx + dy * dy
